import json
import os

import pytest

from otp_auth.core.errors import LoadError, SaveError, ValidationError
from otp_auth.database.provider_store import Provider, ProviderStore
from tests.conftest import DEMO_SECRET, RFC_SECRET


def test_missing_file_loads_empty(providers_path):
    store = ProviderStore.load(providers_path)
    assert len(store) == 0
    assert not os.path.exists(providers_path)


def test_save_then_load_round_trip(providers_path):
    providers = [Provider("work", DEMO_SECRET), Provider("home", RFC_SECRET), Provider("Äpfel", DEMO_SECRET)]
    ProviderStore(providers_path, providers).save()

    loaded = ProviderStore.load(providers_path)
    assert list(loaded) == providers


def test_file_format_is_indented_name_secret_array(providers_path):
    ProviderStore(providers_path, [Provider("work", DEMO_SECRET)]).save()

    with open(providers_path, encoding="utf-8") as f:
        text = f.read()
    assert json.loads(text) == [{"Name": "work", "Secret": DEMO_SECRET}]
    assert text == json.dumps([{"Name": "work", "Secret": DEMO_SECRET}], indent=2)


def test_save_leaves_no_temp_files(tmp_path, providers_path):
    store = ProviderStore(providers_path, [Provider("work", DEMO_SECRET)])
    store.save()
    store.save()
    assert os.listdir(tmp_path) == ["providers.json"]


def test_save_creates_missing_directory(tmp_path):
    path = str(tmp_path / "nested" / "dir" / "providers.json")
    ProviderStore(path, [Provider("work", DEMO_SECRET)]).save()
    assert ProviderStore.load(path).names() == ["work"]


def test_lowercase_keys_are_accepted(providers_path):
    with open(providers_path, "w", encoding="utf-8") as f:
        json.dump([{"name": "work", "secret": DEMO_SECRET}], f)
    assert list(ProviderStore.load(providers_path)) == [Provider("work", DEMO_SECRET)]


def test_null_document_is_empty(providers_path):
    with open(providers_path, "w", encoding="utf-8") as f:
        f.write("null")
    assert len(ProviderStore.load(providers_path)) == 0


@pytest.mark.parametrize(
    "content",
    ["{not json", '{"Name": "work"}', '["work"]', '[{"Name": 1, "Secret": "X"}]'],
)
def test_malformed_file_raises_load_error(providers_path, content):
    with open(providers_path, "w", encoding="utf-8") as f:
        f.write(content)
    with pytest.raises(LoadError):
        ProviderStore.load(providers_path)


def test_open_falls_back_to_empty_and_keeps_file(providers_path):
    with open(providers_path, "w", encoding="utf-8") as f:
        f.write("{broken")

    store, error = ProviderStore.open(providers_path)

    assert isinstance(error, LoadError)
    assert len(store) == 0
    with open(providers_path, encoding="utf-8") as f:
        assert f.read() == "{broken"


def test_add_writes_through(providers_path):
    store = ProviderStore(providers_path)
    index = store.add(Provider("work", DEMO_SECRET))

    assert index == 0
    with open(providers_path, encoding="utf-8") as f:
        assert json.load(f) == [{"Name": "work", "Secret": DEMO_SECRET}]


def test_add_duplicate_name_is_rejected_without_write(providers_path):
    store = ProviderStore(providers_path, [Provider("work", DEMO_SECRET)])
    with pytest.raises(ValidationError):
        store.add(Provider("work", RFC_SECRET))
    assert len(store) == 1
    assert not os.path.exists(providers_path)


def test_add_rolls_back_when_save_fails(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("a file, not a directory")
    store = ProviderStore(str(blocker / "providers.json"))

    with pytest.raises(SaveError):
        store.add(Provider("work", DEMO_SECRET))
    assert len(store) == 0


def test_remove_writes_through(providers_path):
    store = ProviderStore(providers_path, [Provider("a", DEMO_SECRET), Provider("b", RFC_SECRET)])
    removed = store.remove(0)

    assert removed.name == "a"
    assert ProviderStore.load(providers_path).names() == ["b"]


def test_remove_out_of_range(providers_path):
    with pytest.raises(IndexError):
        ProviderStore(providers_path).remove(0)


def test_remove_restores_provider_when_save_fails(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("")
    store = ProviderStore(str(blocker / "providers.json"), [Provider("a", DEMO_SECRET)])

    with pytest.raises(SaveError):
        store.remove(0)
    assert store.names() == ["a"]


def test_provider_create_trims_input():
    assert Provider.create("  work ", f" {DEMO_SECRET}\n") == Provider("work", DEMO_SECRET)


@pytest.mark.parametrize(
    "name, secret, message",
    [
        ("", DEMO_SECRET, "name cannot be empty"),
        ("   ", DEMO_SECRET, "name cannot be empty"),
        ("work", "", "Secret cannot be empty"),
        ("work", "not-base32!", "valid base32"),
    ],
)
def test_provider_create_validation(name, secret, message):
    with pytest.raises(ValidationError, match=message):
        Provider.create(name, secret)


def test_index_of(providers_path):
    store = ProviderStore(providers_path, [Provider("a", DEMO_SECRET), Provider("b", RFC_SECRET)])
    assert store.index_of("b") == 1
    assert store.index_of("missing") is None
