"""Shared test fixtures."""
import json
from datetime import datetime

import pytest

from bne.errors import AccountingServiceError, ExtractionServiceError
from bne.storage import ProcessingStore
from bne.types import ExtractedName, UnitReference
from bne.usage import DailyUsage, UsageBucket, UsageBudgetTracker


JUAN = [
    ["Y él lo vio", "Jesús subió a Jerusalén", "Él oró"],
    [
        "Al tercer día se hicieron unas bodas en Caná de Galilea",
        "Y fueron también invitados a las bodas Jesús y sus discípulos",
        "Y faltando el vino, la madre de Jesús le dijo: No tienen vino",
        "Jesús le dijo: ¿Qué tienes conmigo, mujer?",
        "Su madre dijo a los que servían: Haced todo lo que os dijere",
    ],
]

GENESIS = [
    ["En el principio creó Dios los cielos y la tierra", "Y la tierra estaba desordenada y vacía"],
]

INDEX = [
    {
        "key": "genesis", "title": "Génesis", "shortTitle": "Gén", "abbr": "Gn",
        "testament": "AT", "category": "Pentateuco", "number": 1,
        "chapters": len(GENESIS), "verses": sum(len(c) for c in GENESIS),
    },
    {
        "key": "juan", "title": "Juan", "shortTitle": "Jn", "abbr": "Jn",
        "testament": "NT", "category": "Evangelios", "number": 43,
        "chapters": len(JUAN), "verses": sum(len(c) for c in JUAN),
    },
]


class FakeExtractor:
    """Records every call; answers from a text -> names mapping."""

    def __init__(self, responses=None, fail_on=()):
        self.responses = responses or {}
        self.fail_on = set(fail_on)
        self.calls = []

    def extract(self, text, preceding_context=None, provider_override=None):
        self.calls.append((text, preceding_context, provider_override))
        if text in self.fail_on:
            raise ExtractionServiceError(f"service down for {text!r}")
        return [ExtractedName(*pair) for pair in self.responses.get(text, [])]


class FakeAccounting:
    """Returns queued totals; an exception instance in the queue is raised."""

    def __init__(self, *results):
        self.results = list(results) or [0]
        self.calls = 0

    def get_daily_usage(self, since: datetime) -> DailyUsage:
        self.calls += 1
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            raise result
        return DailyUsage(buckets=[UsageBucket(input_tokens=result, output_tokens=0, num_model_requests=1)])


class ScriptedBudget(UsageBudgetTracker):
    """Budget whose can_proceed() answers come from a list (True when exhausted)."""

    def __init__(self, answers=()):
        super().__init__(FakeAccounting(0))
        self.answers = list(answers)
        self.refreshes = 0

    def refresh(self):
        self.refreshes += 1
        return super().refresh()

    def can_proceed(self):
        return self.answers.pop(0) if self.answers else True


def write_corpus(path, index=INDEX, books=None):
    books = books if books is not None else {"genesis": GENESIS, "juan": JUAN}
    path.mkdir(parents=True, exist_ok=True)
    (path / "_index.json").write_text(json.dumps(index, ensure_ascii=False), encoding="utf-8")
    for key, chapters in books.items():
        (path / f"{key}.json").write_text(json.dumps(chapters, ensure_ascii=False), encoding="utf-8")
    return path


@pytest.fixture
def corpus_dir(tmp_path):
    return write_corpus(tmp_path / "bible_data")


@pytest.fixture
def corpus(corpus_dir):
    from bne.corpus import JsonCorpus
    return JsonCorpus(corpus_dir)


@pytest.fixture
def store(tmp_path):
    store = ProcessingStore(tmp_path / "names.db")
    store.create_tables()
    return store


@pytest.fixture
def extractor():
    return FakeExtractor({
        "Jesús subió a Jerusalén": [("Jesús", "person"), ("Jerusalén", "place")],
    })


@pytest.fixture
def accounting_error():
    return AccountingServiceError(503, "upstream unavailable")


@pytest.fixture
def ref():
    return UnitReference("juan", 1, 2)
