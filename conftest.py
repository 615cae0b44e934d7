import pytest
from hypothesis import settings

from native_binning import BinningEngine, EngineConfig, NativeLibraryError

# Configure hypothesis profiles
settings.register_profile("ci", max_examples=50, deadline=None)
settings.register_profile("dev", max_examples=10, deadline=None)
settings.register_profile("debug", max_examples=1, deadline=None)
settings.load_profile("ci")


@pytest.fixture(scope="session")
def native_cache_dir(tmp_path_factory):
    return tmp_path_factory.mktemp("native_cache")


@pytest.fixture(scope="session")
def numpy_engine():
    engine = BinningEngine(EngineConfig(backend="numpy")).init()
    yield engine
    engine.close()


@pytest.fixture(scope="session")
def native_engine(native_cache_dir):
    """Engine on the compiled library; skips when no C++ compiler is usable."""
    engine = BinningEngine(EngineConfig(backend="native", cache_dir=native_cache_dir))
    try:
        engine.init()
    except NativeLibraryError as e:
        pytest.skip(f"native backend unavailable: {e}")
    yield engine
    engine.close()


@pytest.fixture(scope="session", params=["numpy", "native"])
def engine(request):
    """Every test using this fixture runs once per backend."""
    return request.getfixturevalue(f"{request.param}_engine")
