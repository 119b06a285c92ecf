from __future__ import annotations

import asyncio
import logging

import numpy as np

from tmd_core.errors import InvalidInputError, InvalidModelError
from tmd_core.modal import ModalAnalyzer
from tmd_core.response import ForceInput, ResponseResult, resolve_damping, run_response
from tmd_core.structures import StructuralModel, TmdSetting, TmdShearBuilding
from tmd_core.wave_analysis import DEFAULT_DAMPING, WaveAnalysisResult, analyze_wave
from tmd_core.waves import create_force_wave_input, make_sine_wave

logger = logging.getLogger(__name__)

AUTO_DAMPING = -1.0


def damping_from(value) -> float:
    """Damping selector from a request: >= 0 explicit ratio, < 0 automatic."""
    try:
        return float(value)
    except (TypeError, ValueError) as err:
        raise InvalidInputError(f"Invalid damping_h: {value!r}") from err


class StructureFactory:
    @staticmethod
    def create_model(payload: dict) -> StructuralModel:
        try:
            weights = [float(w) for w in payload["weights_kn"]]
            stiffness = [float(k) for k in payload["stiffness_kn_per_cm"]]
            damping = [float(c) for c in payload.get("extra_damping_kn_per_kine", [])]
            tmd_list = tuple(
                TmdSetting(floor=int(item["floor"]),
                           weight_kn=float(item["weight_kn"]),
                           freq_hz=float(item["freq_hz"]))
                for item in payload.get("tmd_list", [])
            )
            # no explicit story count -> as many stories as the longest array
            story_count = payload.get("story_count")
            if story_count is None:
                story_count = max(len(weights), len(stiffness), len(damping), 1)
            story_count = int(story_count)
        except (KeyError, TypeError, ValueError) as err:
            raise InvalidModelError(f"Invalid model definition: {err}") from err

        return StructuralModel(
            name=str(payload.get("name", "Model")),
            story_count=story_count,
            weights_kn=tuple(weights),
            stiffness_kn_per_cm=tuple(stiffness),
            extra_damping_kn_per_kine=tuple(damping),
            tmd_list=tmd_list,
        ).normalized()

    @staticmethod
    def create_forces(items: list) -> list[ForceInput]:
        """
        Each item is either {"floor_index", "data"} with a force history in kN,
        or {"floor_index", "wave", "max_force_kn"} scaling a normalised record.
        """
        forces = []
        for item in items:
            try:
                if "data" in item:
                    data = np.asarray(item["data"], dtype=float)
                else:
                    data = create_force_wave_input(item["wave"], float(item["max_force_kn"]))
                forces.append(ForceInput(floor_index=int(item["floor_index"]), data=data))
            except (KeyError, TypeError, ValueError) as err:
                raise InvalidInputError(f"Invalid force input: {err}") from err
        return forces


class ModalService:
    def run(self, model: StructuralModel, damping_h=AUTO_DAMPING) -> dict:
        modal = ModalAnalyzer.from_model(model).run()
        calc_h = resolve_damping(model, damping_from(damping_h))
        building = TmdShearBuilding.from_model(model, calc_h)

        resp = modal.as_dict()
        resp["damping_h"] = calc_h
        resp["M_matrix"] = building.M.tolist()
        resp["K_matrix"] = building.K.tolist()
        resp["C_matrix"] = building.C.tolist()
        resp["tmd_floors"] = list(building.tmd_floors)
        return resp


class ResponseService:
    def run(self, model: StructuralModel, payload: dict) -> ResponseResult:
        damping_h = damping_from(payload.get("damping_h", AUTO_DAMPING))
        name = str(payload.get("name", model.name))

        wave = payload.get("wave")
        forces = StructureFactory.create_forces(payload["forces"]) if payload.get("forces") else None
        if wave is not None and forces:
            raise InvalidInputError("Give either 'wave' or 'forces', not both")

        logger.info("running response %r for model %r", name, model.name)
        return run_response(name, model, damping_h, wave=wave, forces=forces)


class BatchResponseService:
    """
    One independent analysis per selected model.  Results come back in the
    order the models were selected, whatever order the runs finish in.
    """

    async def run(self, models: list[StructuralModel], payload: dict) -> list[ResponseResult]:
        service = ResponseService()

        def job(model: StructuralModel) -> ResponseResult:
            item_payload = dict(payload)
            item_payload.setdefault("name", model.name)
            return service.run(model, item_payload)

        tasks = [asyncio.to_thread(job, model) for model in models]
        return list(await asyncio.gather(*tasks))


class WaveAnalysisService:
    def run(self, payload: dict, default_damping=DEFAULT_DAMPING) -> WaveAnalysisResult:
        if "wave" not in payload:
            raise InvalidInputError("Missing 'wave'")
        damping = payload.get("damping_list") or list(default_damping)
        return analyze_wave(payload["wave"], damping)


class SineWaveService:
    def run(self, payload: dict) -> np.ndarray:
        if "freq_hz" not in payload:
            raise InvalidInputError("Missing 'freq_hz'")
        try:
            options = {
                "freq_hz": float(payload["freq_hz"]),
                "pre_cycles": int(payload.get("pre_cycles", 0)),
                "harmonic_cycles": int(payload.get("harmonic_cycles", 1)),
                "post_cycles": int(payload.get("post_cycles", 0)),
                "add_after_observation": bool(payload.get("add_after_observation", False)),
            }
        except (TypeError, ValueError) as err:
            raise InvalidInputError(f"Invalid sine wave settings: {err}") from err
        return make_sine_wave(**options)


class TimeSimulationService:
    """Streams a computed response as INIT, DATA... and DONE frames."""

    def __init__(self, chunk: int = 50, delay: float = 0.005):
        self.chunk = max(1, int(chunk))
        self.delay = delay

    async def run(self, model: StructuralModel, payload: dict):
        result = await asyncio.to_thread(ResponseService().run, model, payload)

        yield {
            "type": "INIT",
            "name": result.name,
            "main_count": result.main_count,
            "tmd_count": result.tmd_count,
            "tmd_floors": list(result.tmd_floors),
            "steps": result.steps,
        }

        for start in range(0, result.steps, self.chunk):
            window = slice(start, start + self.chunk)
            yield {
                "type": "DATA",
                "t": result.time[window].tolist(),
                "wave_acc": result.wave_acc[window].tolist(),
                "main_acc": result.main_acc[:, window].tolist(),
                "main_dis": result.main_dis[:, window].tolist(),
                "tmd_acc": result.tmd_acc[:, window].tolist(),
                "tmd_dis": result.tmd_dis[:, window].tolist(),
            }
            await asyncio.sleep(self.delay)

        yield {"type": "DONE", **result.max_values()}
