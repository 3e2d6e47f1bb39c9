"""Tests for deletion.py: selected bad photos are removed everywhere."""
import pytest

from conftest import FakeClock, MemoryLibrary, MemoryStore
from phototriage.core.collection import PhotoCollection
from phototriage.core.deletion import delete_selected
from phototriage.core.library import PhotoLibraryPermissionError
from phototriage.core.models import AnalysisMethod, CachedResult, Category
from phototriage.core.result_cache import ResultCache
from phototriage.core.selection import SelectionLedger


@pytest.fixture
def ten_bad():
    library = MemoryLibrary(10)
    collection = PhotoCollection(library)
    collection.load_initial(10)
    for p in collection:
        p.apply_result(Category.BAD, 0.1, AnalysisMethod.PRIMARY)
    return library, collection, SelectionLedger(collection)


class TestDeleteSelected:
    def test_deletes_exactly_the_selected(self, ten_bad):
        library, collection, ledger = ten_bad
        for pid in ("p001", "p004", "p007"):
            ledger.toggle(pid)

        outcome = delete_selected(collection, ledger, library)

        assert outcome.deleted == ["p001", "p004", "p007"]
        assert outcome.failed == []
        assert len(collection) == 7
        assert len(collection.bad_photos()) == 7
        assert all(not p.selected for p in collection.bad_photos())
        assert ledger.count() == 0
        assert collection.total_asset_count == 7

    def test_empty_selection_makes_no_call(self, ten_bad):
        library, collection, ledger = ten_bad
        outcome = delete_selected(collection, ledger, library)
        assert outcome.requested == []
        assert library.delete_calls == []

    def test_refused_ids_stay_selected(self, ten_bad):
        library, collection, ledger = ten_bad
        ledger.select_all(["p000", "p001"])
        library.refuse_delete.add("p001")

        outcome = delete_selected(collection, ledger, library)

        assert outcome.deleted == ["p000"]
        assert outcome.failed == ["p001"]
        assert collection.get("p001") is not None
        assert ledger.selected_ids() == {"p001"}
        assert collection.get("p001").selected

    def test_library_error_removes_nothing(self, ten_bad):
        library, collection, ledger = ten_bad
        ledger.select_all(["p000", "p001"])
        library.delete_error = PhotoLibraryPermissionError("denied")

        with pytest.raises(PhotoLibraryPermissionError):
            delete_selected(collection, ledger, library)
        assert len(collection) == 10
        assert ledger.count() == 2

    def test_deleted_photos_leave_the_cache(self, ten_bad):
        library, collection, ledger = ten_bad
        clock = FakeClock()
        cache = ResultCache(MemoryStore(), clock=clock)
        for pid in ("p000", "p001", "p002"):
            cache.put(pid, CachedResult(Category.BAD, 0.1, AnalysisMethod.PRIMARY, clock()))
        ledger.select_all(["p000", "p001"])
        library.refuse_delete.add("p001")

        delete_selected(collection, ledger, library, cache)

        assert cache.get("p000") is None
        assert cache.get("p001") is not None
        assert cache.get("p002") is not None
        assert len(cache) == 2
