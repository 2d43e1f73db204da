"""Webhook server for GitHub issue-label and pull-request events."""

import os

import structlog
from fastapi import FastAPI, HTTPException, Request

from repo_promoter.config.settings import PromoterSettings
from repo_promoter.engine.event_classifier import ClassifiedEvent, EventClassifier
from repo_promoter.engine.preconditions import PreconditionValidator
from repo_promoter.engine.promotion import PromotionSaga
from repo_promoter.engine.run_status import RunStatusTracker
from repo_promoter.engine.tracking import TrackingBookkeeper
from repo_promoter.exceptions import RepoPromoterError
from repo_promoter.providers.factory import create_git_provider

log = structlog.get_logger(__name__)

app = FastAPI(title="repo-promoter webhook server")

# Set by the ``serve`` command, or loaded from $PROMOTER_CONFIG on first use.
settings: PromoterSettings | None = None
tracker = RunStatusTracker()


def get_settings() -> PromoterSettings:
    global settings
    if settings is None:
        settings = PromoterSettings.from_yaml(os.getenv("PROMOTER_CONFIG", "promoter.yaml"))
        log.info("webhook_settings_loaded")
    return settings


@app.post("/webhook/github")
async def github_webhook(request: Request):
    """Handle GitHub webhook events."""
    event_type = request.headers.get("X-GitHub-Event")

    if not event_type:
        raise HTTPException(status_code=400, detail="Missing X-GitHub-Event header")

    try:
        payload = await request.json()
    except ValueError as e:
        raise HTTPException(status_code=400, detail="Invalid JSON payload") from e
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Payload must be a JSON object")

    log.info("webhook_received", event_type=event_type, action=payload.get("action"))

    classified = EventClassifier().classify(event_type, payload)
    if not classified.should_process:
        log.info("webhook_skipped", reason=classified.skip_reason)
        return {"status": "skipped", "event_type": event_type, "reason": classified.skip_reason}

    try:
        result = await handle_classified_event(classified)
        return {"status": "success", "event_type": event_type, **result}

    except RepoPromoterError as e:
        log.error("webhook_processing_failed", error=e.message, exc_info=True)
        raise HTTPException(status_code=422, detail=e.message) from e
    except Exception as e:
        log.error("webhook_processing_unexpected", error=str(e), exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error") from e


async def handle_classified_event(classified: ClassifiedEvent) -> dict:
    """Run the promotion or bookkeeping a classified event asks for."""
    current = get_settings()

    if classified.label_event is not None:
        event = classified.label_event
        # Rejected events never open a connection.
        PreconditionValidator(current.promotion).validate(event.label, event.issue.labels)

    git = create_git_provider(current)
    await git.connect()
    try:
        if classified.label_event is not None:
            promotion = await PromotionSaga(current, git, tracker).run(classified.label_event)
            return {
                "promotion": promotion.status.value,
                "branch": promotion.branch,
                "pull_request": promotion.pull_request.number if promotion.pull_request else None,
                "detail": promotion.summary(),
            }

        bookkeeping = await TrackingBookkeeper(current, git).handle_merge(classified.merge_event)
        return {
            "tracking": bookkeeping.action.value,
            "issue": bookkeeping.issue.number if bookkeeping.issue else None,
        }
    finally:
        await git.disconnect()


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "repo-promoter-webhook"}


@app.get("/status")
async def run_status():
    """Every current and recent promotion run."""
    return tracker.snapshot()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)  # nosec B104 # Development server binding
