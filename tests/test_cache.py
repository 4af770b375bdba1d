import numpy as np

from attendance_kiosk.utils.cache import LocalEmbeddingStore

from conftest import unit_vector


def test_save_and_get(tmp_path):
    store = LocalEmbeddingStore(str(tmp_path / 'emb.pkl'))

    store.save('S1', unit_vector(0))

    np.testing.assert_allclose(store.get('S1'), unit_vector(0))
    assert store.has('S1')
    assert not store.has('S2')
    assert len(store) == 1


def test_save_replaces_existing_entry(tmp_path):
    store = LocalEmbeddingStore(str(tmp_path / 'emb.pkl'))

    store.save('S1', unit_vector(0))
    store.save('S1', unit_vector(1))

    assert len(store) == 1
    np.testing.assert_allclose(store.get('S1'), unit_vector(1))


def test_load_all_lists_entries(tmp_path):
    store = LocalEmbeddingStore(str(tmp_path / 'emb.pkl'))
    store.save('S1', unit_vector(0))
    store.save('S2', unit_vector(1))

    entries = store.load_all()

    assert sorted(e['student_id'] for e in entries) == ['S1', 'S2']
    assert all('timestamp' in e for e in entries)


def test_entries_survive_a_new_instance(tmp_path):
    path = str(tmp_path / 'emb.pkl')
    LocalEmbeddingStore(path).save('S1', unit_vector(0))

    assert LocalEmbeddingStore(path).has('S1')


def test_clear(tmp_path):
    store = LocalEmbeddingStore(str(tmp_path / 'emb.pkl'))
    store.save('S1', unit_vector(0))

    store.clear()
    store.clear()

    assert len(store) == 0


def test_missing_or_corrupt_file_reads_empty(tmp_path):
    path = tmp_path / 'emb.pkl'
    assert len(LocalEmbeddingStore(str(path))) == 0

    path.write_bytes(b'not a pickle')

    assert LocalEmbeddingStore(str(path)).load_all() == []
