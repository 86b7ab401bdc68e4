import threading
import time

import pytest

from conftest import FakeDetector, FakeLandmarker, FakeSegmenter
from facecontour.services import ModelServices


class _Closable:
    def __init__(self):
        self.closed = False

    def close(self):
        self.closed = True


class TestModelServices:
    def test_loads_each_model_once_under_contention(self):
        calls = []
        lock = threading.Lock()

        def factory():
            with lock:
                calls.append(1)
            time.sleep(0.05)
            return FakeLandmarker()

        services = ModelServices(segmenter_factory=FakeSegmenter, detector_factory=FakeDetector, landmarker_factory=factory)
        seen = []
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait()
            seen.append(services.landmarker)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(calls) == 1
        assert len({id(s) for s in seen}) == 1

    def test_lazy_until_first_use(self):
        services = ModelServices(segmenter_factory=FakeSegmenter, detector_factory=FakeDetector, landmarker_factory=FakeLandmarker)
        assert not services.is_loaded("segmenter")
        services.segmenter
        assert services.is_loaded("segmenter")
        assert not services.is_loaded("detector")
        services.init()
        assert all(services.is_loaded(n) for n in ModelServices.NAMES)

    def test_from_instances(self):
        seg, det, lm = FakeSegmenter(), FakeDetector(), FakeLandmarker()
        services = ModelServices.from_instances(seg, det, lm)
        assert services.segmenter is seg
        assert services.detector is det
        assert services.landmarker is lm

    def test_close_releases_models(self):
        model = _Closable()
        with ModelServices.from_instances(FakeSegmenter(), FakeDetector(), model) as services:
            assert services.landmarker is model
        assert model.closed
        assert not services.is_loaded("landmarker")

    def test_factory_error_propagates_and_retries(self):
        attempts = []

        def flaky():
            attempts.append(1)
            if len(attempts) == 1:
                raise RuntimeError("model file missing")
            return FakeLandmarker()

        services = ModelServices(segmenter_factory=FakeSegmenter, detector_factory=FakeDetector, landmarker_factory=flaky)
        with pytest.raises(RuntimeError):
            services.landmarker
        assert services.landmarker is not None
        assert len(attempts) == 2

    @pytest.mark.parametrize("missing", ["segmenter", "detector", "landmarker"])
    def test_from_instances_requires_every_collaborator(self, missing):
        kwargs = {"segmenter": FakeSegmenter(), "detector": FakeDetector(), "landmarker": FakeLandmarker()}
        kwargs[missing] = None
        with pytest.raises(ValueError, match=missing):
            ModelServices.from_instances(**kwargs)
