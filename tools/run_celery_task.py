#!/usr/bin/env python3
"""
Script to trigger the skills analysis on the Docker Compose setup from your local machine.

This script connects to the broker running in Docker and sends tasks to the
workers. It requires the same dependencies as the workers to import the task
definitions.

Usage:
    python run_celery_task.py --help
    python run_celery_task.py skills analyze-skills
    python run_celery_task.py --wait --timeout 3600 skills analyze-skills
    python run_celery_task.py skills state
    python run_celery_task.py skills progress
"""

import json
import sys
from typing import Any

import click
from celery import Celery
from skillsync.common import settings
from skillsync.common.celery_app import ANALYZE_SKILLS, app


TASK_MAPPINGS = {
    "skills": {
        "analyze_skills": ANALYZE_SKILLS,
    },
}


def run_task(app: Celery, category: str, task_name: str, **kwargs) -> str:
    """Run a task using the task mappings."""
    if category not in TASK_MAPPINGS:
        raise ValueError(f"Unknown category: {category}")

    if task_name not in TASK_MAPPINGS[category]:
        raise ValueError(f"Unknown {category} task: {task_name}")

    result = app.send_task(
        TASK_MAPPINGS[category][task_name],
        kwargs=kwargs,
        queue=f"{settings.CELERY_QUEUE_PREFIX}-{category}",
    )
    return result.id


def get_task_result(app: Celery, task_id: str, timeout: int = 300) -> Any:
    """Get the result of a task."""
    result = app.AsyncResult(task_id)
    try:
        return result.get(timeout=timeout)
    except Exception as e:
        return {"error": str(e), "status": result.status}


@click.group()
@click.option("--wait", is_flag=True, help="Wait for task completion and show result")
@click.option(
    "--timeout", default=300, help="Timeout in seconds when waiting for result"
)
@click.pass_context
def cli(ctx, wait, timeout):
    """Run Celery tasks on Docker Compose setup."""
    ctx.ensure_object(dict)
    ctx.obj["wait"] = wait
    ctx.obj["timeout"] = timeout
    ctx.obj.setdefault("app", app)


def execute_task(ctx, category: str, task_name: str, **kwargs):
    """Helper to execute a task and handle results."""
    app = ctx.obj["app"]
    wait = ctx.obj["wait"]
    timeout = ctx.obj["timeout"]

    # Filter out None values
    kwargs = {k: v for k, v in kwargs.items() if v is not None}

    try:
        task_id = run_task(app, category, task_name, **kwargs)
        click.echo("Task submitted successfully!")
        click.echo(f"Task ID: {task_id}")

        if wait:
            click.echo(f"Waiting for task completion (timeout: {timeout}s)...")
            result = get_task_result(app, task_id, timeout)
            click.echo("Task result:")
            click.echo(json.dumps(result, indent=2, default=str))
    except Exception as e:
        click.echo(f"Error running task: {e}")
        sys.exit(1)


@cli.group()
@click.pass_context
def skills(ctx):
    """Skills analysis tasks."""
    pass


@skills.command("analyze-skills")
@click.pass_context
def skills_analyze(ctx):
    """Run the full sync-and-summarize workflow now."""
    execute_task(ctx, "skills", "analyze_skills")


@skills.command("state")
def skills_state():
    """Show the last published workflow state and results."""
    from skillsync.common.cache import KeyValueCache
    from skillsync.common.publisher import load_state

    click.echo(
        json.dumps(load_state(KeyValueCache()), indent=2, ensure_ascii=False, default=str)
    )


@skills.command("progress")
def skills_progress():
    """Show the workflow progress row straight from the database."""
    from skillsync.common.db.connection import make_session
    from skillsync.common.phases import PhaseTracker

    with make_session() as session:
        payload = PhaseTracker(session).state().as_payload()
    click.echo(json.dumps(payload, indent=2, ensure_ascii=False))


if __name__ == "__main__":
    cli()
