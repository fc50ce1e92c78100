"""
WebSocket handler for real-time job progress updates.
"""

import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from reeldocs.models.schemas import JobStatus, PipelineStep, ProgressEvent
from reeldocs.services.container import ServiceContainer
from reeldocs.services.job_service import TERMINAL_STEPS

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websocket"])

HEARTBEAT_INTERVAL = 30.0


@router.websocket("/ws/jobs/{job_id}")
async def job_progress_websocket(websocket: WebSocket, job_id: str) -> None:
    """
    WebSocket endpoint for real-time job progress updates.

    The current job state is sent on connect; after that every progress
    event of the job. The connection closes after the complete or error
    event (immediately if the job already finished).

    Example client (Python):
        async with websockets.connect(f"ws://localhost:8801/ws/jobs/{job_id}") as ws:
            async for message in ws:
                data = json.loads(message)
                print(f"{data['step']}: {data['progress']:.0%} - {data['message']}")

    Args:
        websocket: WebSocket connection
        job_id: Job identifier to subscribe to
    """
    services: ServiceContainer = websocket.app.state.services
    job_manager = services.job_manager

    job = await job_manager.get_job(job_id)
    if job is None:
        await websocket.close(code=4004, reason=f"Job not found: {job_id}")
        return

    # Subscribe before sending the snapshot so no update falls in between
    queue = job_manager.subscribe(job_id)
    await websocket.accept()
    logger.info(f"WebSocket connected for job {job_id}")

    try:
        step = PipelineStep.ERROR.value if job.status == JobStatus.FAILED else job.step or "pending"
        await websocket.send_json(ProgressEvent(
            job_id=job.id,
            status=job.status,
            step=step,
            message=job.error_message or job.step_message or "Connected",
            progress=job.progress,
            error=job.error_message,
        ).model_dump(mode="json"))

        if job.status.is_terminal:
            await websocket.close()
            return

        while True:
            try:
                message = await asyncio.wait_for(queue.get(), timeout=HEARTBEAT_INTERVAL)
            except asyncio.TimeoutError:
                # Keep idle connections alive
                await websocket.send_json({"type": "heartbeat"})
                continue

            await websocket.send_json(message)
            if message.get("step") in TERMINAL_STEPS:
                await websocket.close()
                break

    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected for job {job_id}")
    finally:
        job_manager.unsubscribe(job_id, queue)
        logger.info(f"WebSocket closed for job {job_id}")
