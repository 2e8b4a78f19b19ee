"""Engine setup in db/engine.py."""

import pytest

from inventory_kernel.db.engine import get_engine, init_engine_from_url, is_postgres


class TestEngine:

    def test_backend_reported_from_active_engine(self, db_engine):
        assert get_engine() is db_engine
        assert is_postgres() == (db_engine.dialect.name == "postgresql")

    @pytest.mark.parametrize("url", ["sqlite://", "sqlite:///:memory:"])
    def test_in_memory_sqlite_rejected(self, url):
        with pytest.raises(ValueError, match="file-backed"):
            init_engine_from_url(url)
