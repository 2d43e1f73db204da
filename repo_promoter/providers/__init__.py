"""Git provider implementations.

Key Components:
    - GitProvider: Abstract base for Git platform providers
    - GitHubRestProvider: GitHub implementation on PyGithub
    - create_git_provider: Builds the provider named in the settings
"""
