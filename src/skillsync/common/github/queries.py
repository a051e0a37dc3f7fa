"""GraphQL documents for the activity sync.

Every query selects ``rateLimit`` so the scheduler sees the remaining budget
after each page.
"""

RATE_LIMIT_FRAGMENT = """
    rateLimit {
      remaining
      cost
      resetAt
    }
"""

USER_REPOS_QUERY = (
    """
query UserRepos($cursor: String) {
"""
    + RATE_LIMIT_FRAGMENT
    + """
    viewer {
      login
      email
      repositories(first: 100, after: $cursor, ownerAffiliations: [OWNER, ORGANIZATION_MEMBER]) {
        nodes {
          id
          databaseId
          name
          nameWithOwner
          owner {
            login
          }
          isPrivate
          isFork
          defaultBranchRef {
            name
          }
          primaryLanguage {
            name
          }
          createdAt
          updatedAt
        }
        pageInfo {
          hasNextPage
          endCursor
        }
      }
    }
}
"""
)

REPO_COMMITS_QUERY = (
    """
query RepoCommits($owner: String!, $name: String!, $since: GitTimestamp, $cursor: String) {
"""
    + RATE_LIMIT_FRAGMENT
    + """
    repository(owner: $owner, name: $name) {
      defaultBranchRef {
        target {
          ... on Commit {
            history(first: 100, since: $since, after: $cursor) {
              nodes {
                oid
                messageHeadline
                authoredDate
                committedDate
                additions
                deletions
                changedFilesIfAvailable
                author {
                  email
                }
              }
              pageInfo {
                hasNextPage
                endCursor
              }
            }
          }
        }
      }
    }
}
"""
)

REPO_PULL_REQUESTS_QUERY = (
    """
query RepoPullRequests($owner: String!, $name: String!, $cursor: String) {
"""
    + RATE_LIMIT_FRAGMENT
    + """
    repository(owner: $owner, name: $name) {
      pullRequests(first: 50, orderBy: {field: UPDATED_AT, direction: DESC}, after: $cursor) {
        nodes {
          id
          databaseId
          number
          title
          state
          body
          merged
          additions
          deletions
          changedFiles
          commits {
            totalCount
          }
          createdAt
          mergedAt
          closedAt
          updatedAt
          author {
            login
          }
          reviews(first: 50) {
            nodes {
              id
              databaseId
              state
              body
              submittedAt
              author {
                login
              }
            }
          }
        }
        pageInfo {
          hasNextPage
          endCursor
        }
      }
    }
}
"""
)
