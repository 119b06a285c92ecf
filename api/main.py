import json
import logging

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from tmd_app.config import load_settings
from tmd_app.services import (
    AUTO_DAMPING,
    BatchResponseService,
    ModalService,
    ResponseService,
    SineWaveService,
    StructureFactory,
    TimeSimulationService,
    WaveAnalysisService,
)
from tmd_core.errors import (
    InvalidInputError,
    InvalidModelError,
    SingularMatrixError,
    TmdAnalysisError,
)
from tmd_core.units import DT

settings = load_settings()
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="TMD shear building analysis")

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _http_error(err: TmdAnalysisError) -> HTTPException:
    if isinstance(err, (InvalidModelError, InvalidInputError)):
        return HTTPException(status_code=400, detail=str(err))
    if isinstance(err, SingularMatrixError):
        return HTTPException(status_code=422, detail=str(err))
    return HTTPException(status_code=500, detail=str(err))


def _model_from(payload: dict):
    model_req = payload.get("model_req")
    if not model_req:
        raise HTTPException(status_code=400, detail="Missing 'model_req'.")
    return StructureFactory.create_model(model_req)


# === WebSocket Endpoint ===
@app.websocket("/ws/simulate")
async def websocket_endpoint(websocket: WebSocket):
    await websocket.accept()
    logger.info("client connected via websocket")

    try:
        data = await websocket.receive_text()
        payload = json.loads(data)
        if not isinstance(payload, dict):
            raise InvalidInputError("Simulation request must be a JSON object")

        model = StructureFactory.create_model(payload.get("model_req", {}))
        simulator = TimeSimulationService(chunk=settings.stream_chunk, delay=settings.stream_delay)
        async for frame in simulator.run(model, payload.get("sim_req", {})):
            await websocket.send_json(frame)

    except WebSocketDisconnect:
        logger.info("client disconnected")
        return
    except (TmdAnalysisError, json.JSONDecodeError) as e:
        logger.warning("simulation error: %s", e)
        await websocket.send_json({"type": "ERROR", "message": str(e)})

    await websocket.close()


# === Model analysis ===
@app.post("/model/modal")
async def calculate_modal_properties(payload: dict):
    try:
        model = _model_from(payload)
        return ModalService().run(model, payload.get("damping_h", AUTO_DAMPING))
    except TmdAnalysisError as e:
        logger.warning("modal analysis failed: %s", e)
        raise _http_error(e) from e


@app.post("/model/response")
async def calculate_response(payload: dict):
    try:
        model = _model_from(payload)
        result = ResponseService().run(model, payload.get("sim_req", {}))
        return result.as_dict()
    except TmdAnalysisError as e:
        logger.warning("response analysis failed: %s", e)
        raise _http_error(e) from e


@app.post("/model/response/batch")
async def calculate_batch_response(payload: dict):
    model_reqs = payload.get("models") or []
    if not model_reqs:
        raise HTTPException(status_code=400, detail="Missing 'models'.")
    try:
        models = [StructureFactory.create_model(req) for req in model_reqs]
        results = await BatchResponseService().run(models, payload.get("sim_req", {}))
        return [result.as_dict() for result in results]
    except TmdAnalysisError as e:
        logger.warning("batch analysis failed: %s", e)
        raise _http_error(e) from e


# === Waves ===
@app.post("/wave/analysis")
async def calculate_wave_analysis(payload: dict):
    try:
        result = WaveAnalysisService().run(payload, settings.spectrum_damping)
        return result.as_dict()
    except TmdAnalysisError as e:
        raise _http_error(e) from e


@app.post("/wave/sine")
async def create_sine_wave(payload: dict):
    try:
        wave = SineWaveService().run(payload)
        return {"dt": DT, "wave": wave.tolist()}
    except TmdAnalysisError as e:
        raise _http_error(e) from e
