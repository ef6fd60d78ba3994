"""WebSocket handler streaming remediation runs to the frontend."""

import asyncio
import json
import logging
import uuid

from fastapi import WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from .orchestrator import RemediationCallback, build_orchestrator
from .project_settings import RemediationSettings, load_remediation_settings
from .state import FindingState, RemediationResult, Route, ScannedFile, ThreatModel

logger = logging.getLogger(__name__)


class RemediationStreamingCallback(RemediationCallback):
    """Streams remediation events to the frontend via WebSocket."""

    def __init__(self, websocket: WebSocket):
        self.ws = websocket

    async def on_phase(self, phase: str, description: str):
        await self._send("remediation_phase", {"phase": phase, "description": description})

    async def on_finding(self, vuln_id: str, route: Route):
        await self._send("finding_routed", {"vuln_id": vuln_id, "route": route.value})

    async def on_state(self, vuln_id: str, state: FindingState):
        await self._send("finding_state", {"vuln_id": vuln_id, "state": state.value})

    async def on_issue_created(self, vuln_id: str, issue):
        await self._send("issue_created", {"vuln_id": vuln_id, **issue.model_dump()})

    async def on_pr_created(self, vuln_id: str, pr):
        await self._send("pr_created", {"vuln_id": vuln_id, **pr.model_dump()})

    async def on_error(self, message: str, recoverable: bool = True):
        await self._send("error", {"message": message, "recoverable": recoverable})

    async def on_complete(self, result: RemediationResult):
        await self._send("remediation_complete", result.model_dump(mode="json", by_alias=True))

    async def _send(self, msg_type: str, payload: dict):
        try:
            await self.ws.send_json({"type": msg_type, "payload": payload})
        except Exception as e:
            logger.debug(f"WebSocket send failed ({msg_type}): {e}")


async def handle_remediation_websocket(websocket: WebSocket):
    """Main WebSocket handler for remediation runs."""
    await websocket.accept()
    callback = RemediationStreamingCallback(websocket)

    settings: RemediationSettings | None = None
    run_task: asyncio.Task | None = None

    try:
        while True:
            raw = await websocket.receive_text()
            msg = json.loads(raw)
            msg_type = msg.get("type", "")

            if msg_type == "ping":
                await websocket.send_json({"type": "pong"})

            elif msg_type == "init":
                payload = msg.get("payload", msg)
                loaded = await load_remediation_settings(payload.get("project_id", ""))
                settings = RemediationSettings(**{
                    k: v for k, v in loaded.items()
                    if k in RemediationSettings.model_fields and v not in ("", None)
                })
                await websocket.send_json({
                    "type": "connected",
                    "session_id": payload.get("session_id", str(uuid.uuid4())),
                })

            elif msg_type == "start_remediation":
                if not settings:
                    await callback.on_error("Not initialized. Send init first.", recoverable=True)
                    continue
                if run_task and not run_task.done():
                    await callback.on_error("A remediation run is already in progress.", recoverable=True)
                    continue

                payload = msg.get("payload", msg)
                try:
                    threat_model = ThreatModel.model_validate(payload.get("threat_model", {}))
                    scanned_files = [ScannedFile.model_validate(f) for f in payload.get("scanned_files", [])]
                except ValidationError as e:
                    await callback.on_error(f"Invalid remediation input: {e}", recoverable=True)
                    continue

                async def run_remediation():
                    try:
                        orchestrator = build_orchestrator(settings, callback)
                        await orchestrator.remediate(threat_model, scanned_files)
                    except Exception as e:
                        logger.exception("Remediation run failed")
                        await callback.on_error(str(e), recoverable=False)

                run_task = asyncio.create_task(run_remediation())

            elif msg_type == "stop":
                if run_task and not run_task.done():
                    run_task.cancel()
                    try:
                        await run_task
                    except asyncio.CancelledError:
                        pass
                await websocket.send_json({"type": "stopped"})

    except WebSocketDisconnect:
        logger.info("Remediation WebSocket disconnected")
    except Exception as e:
        logger.exception(f"Remediation WebSocket error: {e}")
    finally:
        if run_task and not run_task.done():
            run_task.cancel()
