"""Tests for the JSON-backed corpus."""
import json

import pytest

from bne.corpus import Corpus, JsonCorpus

from conftest import JUAN, write_corpus


def test_satisfies_protocol(corpus):
    assert isinstance(corpus, Corpus)


def test_list_collections(corpus):
    infos = corpus.list_collections()

    assert [i.key for i in infos] == ["genesis", "juan"]
    juan = infos[1]
    assert juan.display_name == "Juan"
    assert (juan.group_count, juan.unit_count) == (2, 8)
    assert (juan.testament, juan.abbreviation, juan.number) == ("NT", "Jn", 43)


def test_get_collection(corpus):
    assert corpus.get_collection("genesis").display_name == "Génesis"
    assert corpus.get_collection("hechos") is None


def test_unit_text_is_one_based(corpus):
    assert corpus.get_unit_text("juan", 1, 1) == JUAN[0][0]
    assert corpus.get_unit_text("juan", 2, 5) == JUAN[1][4]


@pytest.mark.parametrize("key, group, unit", [
    ("juan", 1, 4),
    ("juan", 3, 1),
    ("juan", 0, 1),
    ("juan", 1, 0),
    ("hechos", 1, 1),
])
def test_missing_units(corpus, key, group, unit):
    assert corpus.get_unit_text(key, group, unit) is None


def test_list_group_units(corpus):
    units = corpus.list_group_units("juan", 1)
    assert [(u.unit_number, u.text) for u in units] == list(enumerate(JUAN[0], start=1))
    assert corpus.list_group_units("juan", 7) == []


def test_count_units_in_group(corpus):
    assert corpus.count_units_in_group("juan", 2) == 5
    assert corpus.count_units_in_group("hechos", 1) == 0


def test_empty_verse_is_missing(tmp_path):
    corpus = JsonCorpus(write_corpus(tmp_path / "c", books={"juan": [["", "Jesús lloró"]]}))
    assert corpus.get_unit_text("juan", 1, 1) is None
    assert corpus.count_units_in_group("juan", 1) == 2


def test_excluded_collections(corpus_dir):
    corpus = JsonCorpus(corpus_dir, excluded=("genesis",))

    assert [i.key for i in corpus.list_collections()] == ["juan"]
    assert corpus.get_unit_text("genesis", 1, 1) is None


def test_missing_index(tmp_path):
    assert JsonCorpus(tmp_path).list_collections() == []


def test_book_files_are_cached(corpus, corpus_dir):
    corpus.get_unit_text("juan", 1, 1)
    (corpus_dir / "juan.json").write_text(json.dumps([["cambiado"]]), encoding="utf-8")

    assert corpus.get_unit_text("juan", 1, 1) == JUAN[0][0]
