"""
server.py — FastAPI server for the live card scanner

Wires the camera, text recognizer, lookup backend and scan session into
one HTTP server. The browser (or any client) polls /api/state and drives
the session with the command routes.

Architecture:
    ├── Camera capture      (camera.py)
    ├── Text recognition    (ocr.py)
    ├── Card lookup         (lookup_tcgdex.py / lookup_pokemontcg.py / database.py)
    ├── Scan session        (session.py)
    └── FastAPI server      (this file)
        ├── GET  /api/state           → session snapshot
        ├── POST /api/scan/start      → start scanning
        ├── POST /api/scan/stop       → stop camera, go idle
        ├── POST /api/scan/pause      → Scanning → Idle
        ├── POST /api/scan/resume     → Idle → Scanning
        ├── POST /api/scan/clear      → drop results, back to Scanning
        ├── POST /api/search          → manual search {"query": "..."}
        ├── POST /api/select          → pick a match {"id": "..."}
        ├── POST /scan/upload         → phone photo as a frame
        ├── GET  /video_feed          → live MJPEG preview
        ├── GET  /api/status          → camera, lookup cache, uptime
        └── POST /api/cache           → lookup cache management

Usage:
    python server.py                                   # webcam 0, TCGdex
    python server.py --camera-mode mock --mock-dir test_images/
    python server.py --backend local --auto-confirm
"""

import argparse
import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, File, Request, UploadFile
from fastapi.responses import JSONResponse, StreamingResponse
import uvicorn

from camera import Camera
from config import AUTO_CONFIRM_SINGLE_MATCH, LOOKUP_BACKEND, LOOKUP_CACHE_TTL
from errors import SessionBusyError

# ─────────────────────────────────────────────────────────────
# LOGGING
# ─────────────────────────────────────────────────────────────

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("server")

# ─────────────────────────────────────────────────────────────
# GLOBALS
# Initialized in the lifespan startup handler; tests assign them directly.
# ─────────────────────────────────────────────────────────────

cam: Optional[Camera] = None
session = None          # session.ScanSession
lookup = None           # lookup collaborator (usually a CachedLookup)

start_time: float = time.time()

# CLI args (set in main, read in lifespan)
cli_args: Optional[argparse.Namespace] = None


# ─────────────────────────────────────────────────────────────
# RESOURCE LOADING
# ─────────────────────────────────────────────────────────────

def load_scanner_resources(args) -> None:
    """
    Build the recognizer, lookup backend, camera and session.

    The EasyOCR model load (~4s) happens here rather than on the first
    frame, so the first scan is not slow.
    """
    global cam, session, lookup
    from lookup_cache import build_lookup
    from ocr import TextRecognizer
    from session import ScanSession

    logger.info("Loading scanner resources...")
    t0 = time.time()

    recognizer = TextRecognizer()
    _ = recognizer.reader

    backend = getattr(args, "backend", None) or LOOKUP_BACKEND
    lookup = build_lookup(backend, ttl_seconds=LOOKUP_CACHE_TTL)

    cam = Camera(
        mode=getattr(args, "camera_mode", None),
        mock_dir=getattr(args, "mock_dir", None),
    )
    auto_confirm = bool(getattr(args, "auto_confirm", False)) or AUTO_CONFIRM_SINGLE_MATCH
    session = ScanSession(recognizer, lookup, cam, auto_confirm_single_match=auto_confirm)

    logger.info("Scanner resources loaded in %.1fs", time.time() - t0)


# ─────────────────────────────────────────────────────────────
# FASTAPI LIFESPAN (startup/shutdown)
# ─────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup: load resources, start scanning unless --no-autostart.
    Shutdown: stop the session (and with it the camera).
    """
    global start_time
    start_time = time.time()

    logger.info("Starting server initialization...")
    loop = asyncio.get_event_loop()
    await loop.run_in_executor(None, load_scanner_resources, cli_args)

    if not getattr(cli_args, "no_autostart", False):
        if session.start():
            logger.info("Scanning: %s", cam)
        else:
            logger.warning("Camera failed to start; uploads and manual search still work")

    logger.info("Server ready")

    yield  # ── Server is running ──

    if session is not None:
        session.stop()
    logger.info("Server shutdown complete")


# ─────────────────────────────────────────────────────────────
# FASTAPI APP
# ─────────────────────────────────────────────────────────────

app = FastAPI(
    title="Card Scanner",
    lifespan=lifespan,
)


def _not_ready() -> JSONResponse:
    return JSONResponse(
        content={"error": "Scanner resources still loading — try again in a few seconds"},
        status_code=503,
    )


def _state_response(ok: bool = True, status_code: int = 200) -> JSONResponse:
    return JSONResponse(
        content={"ok": ok, "state": session.snapshot().to_dict()},
        status_code=status_code,
    )


async def _json_body(request: Request) -> dict:
    try:
        body = await request.json()
    except Exception:
        return {}
    return body if isinstance(body, dict) else {}


# ─────────────────────────────────────────────────────────────
# ROUTES
# ─────────────────────────────────────────────────────────────

# ──────────────── GET /api/state ── Session Snapshot ────────────────

@app.get("/api/state")
async def api_state():
    if session is None:
        return _not_ready()
    return JSONResponse(content=session.snapshot().to_dict())


# ──────────────── POST /api/scan/* ── Session Commands ────────────────

@app.post("/api/scan/start")
async def scan_start():
    if session is None:
        return _not_ready()
    loop = asyncio.get_event_loop()
    ok = await loop.run_in_executor(None, session.start)
    return _state_response(ok)


@app.post("/api/scan/stop")
async def scan_stop():
    if session is None:
        return _not_ready()
    loop = asyncio.get_event_loop()
    await loop.run_in_executor(None, session.stop)
    return _state_response()


@app.post("/api/scan/pause")
async def scan_pause():
    if session is None:
        return _not_ready()
    return _state_response(session.pause())


@app.post("/api/scan/resume")
async def scan_resume():
    if session is None:
        return _not_ready()
    return _state_response(session.resume())


@app.post("/api/scan/clear")
async def scan_clear():
    if session is None:
        return _not_ready()
    return _state_response(session.clear_results())


# ──────────────── POST /api/search ── Manual Search ────────────────

@app.post("/api/search")
async def manual_search(request: Request):
    """
    Request body (JSON):
        { "query": "Charizard 4/102" }

    409 while a frame or another search is in flight.
    """
    if session is None:
        return _not_ready()

    body = await _json_body(request)
    query = str(body.get("query", "")).strip()
    if not query:
        return JSONResponse(content={"error": "Empty query"}, status_code=400)

    loop = asyncio.get_event_loop()
    try:
        snapshot = await loop.run_in_executor(None, session.manual_search, query)
    except SessionBusyError as e:
        return JSONResponse(content={"error": str(e)}, status_code=409)
    except Exception as e:
        logger.exception("Manual search failed: %s", e)
        return JSONResponse(content={"error": f"Search failed: {e}"}, status_code=500)

    return JSONResponse(content={"ok": True, "state": snapshot.to_dict()})


# ──────────────── POST /api/select ── Pick a Match ────────────────

@app.post("/api/select")
async def select_match(request: Request):
    if session is None:
        return _not_ready()

    body = await _json_body(request)
    match_id = str(body.get("id", "")).strip()
    loop = asyncio.get_event_loop()
    match = await loop.run_in_executor(None, session.select_match, match_id)
    if match is None:
        return JSONResponse(content={"error": f"Unknown match: {match_id}"}, status_code=404)
    return JSONResponse(content={"ok": True, "match": match.to_dict()})


# ──────────────── POST /scan/upload ── Phone Image Upload ────────────────

@app.post("/scan/upload")
async def scan_uploaded_image(image: UploadFile = File(...)):
    """
    Treat an uploaded phone photo as a camera frame.

    Usage from phone JS:
        const formData = new FormData();
        formData.append('image', blob, 'card.jpg');
        fetch('/scan/upload', { method: 'POST', body: formData });
    """
    if session is None:
        return _not_ready()

    content_type = image.content_type or ""
    if not content_type.startswith("image/"):
        return JSONResponse(
            content={"error": f"Expected image file, got {content_type}"},
            status_code=400,
        )

    data = await image.read()
    loop = asyncio.get_event_loop()
    try:
        accepted = await loop.run_in_executor(None, session.handle_frame, data)
    except Exception as e:
        logger.exception("Scan failed: %s", e)
        return JSONResponse(content={"error": f"Scan failed: {e}"}, status_code=500)

    if not accepted:
        return JSONResponse(
            content={"error": "Scanner busy or showing results", "state": session.snapshot().to_dict()},
            status_code=409,
        )
    return _state_response()


# ──────────────── GET /video_feed ── MJPEG Stream ────────────────

@app.get("/video_feed")
async def video_feed():
    """Live MJPEG preview, embedded as <img src="/video_feed">."""
    if cam is None or not cam.is_running:
        return JSONResponse(
            content={"error": "Camera not running"},
            status_code=503,
        )

    return StreamingResponse(
        _generate_mjpeg_frames(),
        media_type="multipart/x-mixed-replace; boundary=frame",
    )


async def _generate_mjpeg_frames():
    while cam is not None and cam.is_running:
        loop = asyncio.get_event_loop()
        jpeg_bytes = await loop.run_in_executor(None, cam.read_jpeg)

        if jpeg_bytes is not None:
            yield (
                b"--frame\r\n"
                b"Content-Type: image/jpeg\r\n\r\n"
                + jpeg_bytes
                + b"\r\n"
            )

        # ~15 FPS is plenty for a preview
        await asyncio.sleep(0.066)


# ──────────────── GET /api/status ── Server Status ────────────────

@app.get("/api/status")
async def api_status():
    stats = lookup.stats() if hasattr(lookup, "stats") else None
    return JSONResponse(content={
        "scanner_ready": session is not None,
        "state": session.state.phase.value if session else None,
        "camera": cam.status() if cam else {"mode": "none", "running": False},
        "lookup": repr(lookup) if lookup is not None else None,
        "lookup_warning": getattr(lookup, "warning", None),
        "cache": stats,
        "uptime_seconds": round(time.time() - start_time, 1),
    })


# ──────────────── POST /api/cache ── Cache Management ────────────────

@app.post("/api/cache")
async def cache_management(request: Request):
    """
    Request body (JSON):
        { "action": "clear" }   → drop all cached lookups
        { "action": "stats" }   → return cache statistics
        { "action": "purge" }   → remove expired entries only
    """
    if not hasattr(lookup, "stats"):
        return JSONResponse(content={"error": "Lookup cache disabled"}, status_code=404)

    body = await _json_body(request)
    action = body.get("action", "stats")

    if action == "clear":
        result = {"cleared": lookup.clear()}
    elif action == "purge":
        result = {"purged": lookup.purge_expired()}
    elif action == "stats":
        result = {}
    else:
        return JSONResponse(
            content={"error": f"Unknown action: {action}"},
            status_code=400,
        )

    return JSONResponse(content={
        "action": action,
        "result": result,
        "cache": lookup.stats(),
    })


# ─────────────────────────────────────────────────────────────
# CLI ENTRY POINT
# ─────────────────────────────────────────────────────────────

def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Card Scanner — FastAPI Server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python server.py                              # webcam, localhost:8080
  python server.py --host 0.0.0.0               # LAN-accessible (phone uploads)
  python server.py --camera-mode mock --mock-dir test_images/
  python server.py --backend pokemontcg --log-level debug
        """,
    )
    parser.add_argument("--host", default="127.0.0.1",
                        help="Bind address (default: 127.0.0.1, use 0.0.0.0 for LAN access)")
    parser.add_argument("--port", type=int, default=8080, help="Port number (default: 8080)")
    parser.add_argument("--camera-mode", choices=["device", "mock"], default=None,
                        help="Camera backend (default: mock if --mock-dir is given, else device)")
    parser.add_argument("--mock-dir", default=None, help="Directory of images for mock camera mode")
    parser.add_argument("--backend", choices=["tcgdex", "pokemontcg", "local"], default=None,
                        help=f"Card lookup backend (default: {LOOKUP_BACKEND})")
    parser.add_argument("--auto-confirm", action="store_true",
                        help="Select a single match immediately instead of listing it")
    parser.add_argument("--no-autostart", action="store_true",
                        help="Start idle; wait for POST /api/scan/start")
    parser.add_argument("--log-level", default="info",
                        choices=["debug", "info", "warning", "error"],
                        help="Logging level (default: info)")
    parser.add_argument("--ssl-certfile", default=None,
                        help="Path to SSL certificate file (enables HTTPS; phone cameras need it)")
    parser.add_argument("--ssl-keyfile", default=None,
                        help="Path to SSL private key file (requires --ssl-certfile)")
    return parser.parse_args(argv)


def main():
    """Entry point — parse args and start the uvicorn server."""
    global cli_args

    args = parse_args()
    cli_args = args

    logging.getLogger().setLevel(getattr(logging, args.log_level.upper()))

    logger.info("Starting Card Scanner server...")
    logger.info("  Host: %s", args.host)
    logger.info("  Port: %d", args.port)
    logger.info("  Camera mode: %s", args.camera_mode or "auto")
    logger.info("  Lookup backend: %s", args.backend or LOOKUP_BACKEND)
    if args.ssl_certfile:
        logger.info("  SSL: ENABLED (HTTPS)")

    uvicorn_kwargs = {
        "host": args.host,
        "port": args.port,
        "log_level": args.log_level,
    }
    if args.ssl_certfile and args.ssl_keyfile:
        uvicorn_kwargs["ssl_certfile"] = args.ssl_certfile
        uvicorn_kwargs["ssl_keyfile"] = args.ssl_keyfile

    uvicorn.run(app, **uvicorn_kwargs)


if __name__ == "__main__":
    main()
