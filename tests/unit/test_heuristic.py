"""Tests for the extraction-potential pre-filter."""
import pytest

from bne.extraction.heuristic import has_extraction_potential, residual_text


def test_pure_common_words_have_no_potential():
    assert has_extraction_potential("Y él dijo") is False


def test_residual_capitals_have_potential():
    assert has_extraction_potential("Y David fue a Jerusalén") is True


@pytest.mark.parametrize("text", ["", "   ", "\n"])
def test_empty_text_has_no_potential(text):
    assert has_extraction_potential(text) is False


def test_divine_epithets_are_stripped():
    assert has_extraction_potential("Y dijo Dios: Sea la luz") is False
    assert has_extraction_potential("Jehová es mi pastor; nada me faltará") is False


def test_lowercase_lexicon_words_are_not_stripped():
    # Only the capitalised form is in the lexicon.
    assert "dios" in residual_text("los dios ajenos")


def test_whole_words_only():
    # "Elías" starts with "El" but is a name.
    assert has_extraction_potential("El Elías vino") is True
    assert residual_text("Yerusalem") == "Yerusalem"


def test_multiword_interrogative_is_stripped():
    assert has_extraction_potential("Por qué lloras") is False


def test_accented_capital_counts():
    assert has_extraction_potential("y vino Ángel") is True


def test_imperatives_are_stripped():
    assert has_extraction_potential("Bendecid, Glorificad y Confiad") is False


def test_sentence_opening_verb_with_name():
    assert has_extraction_potential("Dijo Pedro: No") is True
