"""Core domain models for the promoter.

Key Models:
    - Issue: Coordinating (tracking) issue
    - PullRequest: Originating or promotion pull request
    - Branch: Git branch at a commit
    - Comment: Issue comment
    - IssueReference: ``[owner/repo]#N`` reference parsed from free text
    - LabelEvent / MergeEvent: Normalized trigger payloads
    - CherryPickApplied / CherryPickConflict: Replay outcome
    - PromotionResult: Outcome of a promotion run
"""
