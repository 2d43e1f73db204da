"""Promotion engine.

Key Components:
    - EventClassifier: Normalizes GitHub payloads into label / merge events
    - PromotionSaga: Cherry-picks a merged pull request onto a channel
    - TrackingBookkeeper: Opens, updates and closes tracking issues on merges
    - RunStatusTracker: State machine mirroring the current run
"""
