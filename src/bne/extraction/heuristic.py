"""Zero-cost pre-filter deciding whether a verse is worth an LLM call.

A verse has extraction potential when, after stripping reverential epithets
and words that are capitalised only because they open a sentence, some
uppercase letter is left. Both lexicons are case-sensitive: ``Dios`` is
stripped, ``dios`` is not (and carries no capital anyway).
"""

import re

# Reverential references to the God of Israel; never sent for extraction.
DIVINE_EPITHETS: tuple[str, ...] = (
    "Dios", "Jehová", "Yahvé", "Adonai", "Señor", "SEÑOR",
    "Altísimo", "Todopoderoso", "Omnipotente", "Eterno",
    "Santo", "Creador", "Padre", "Espíritu",
)

# Words capitalised by sentence position in Spanish narrative text.
COMMON_CAPITALIZED_WORDS: tuple[str, ...] = (
    # conjunctions and connectors
    "Y", "E", "O", "U", "Pero", "Mas", "Sino", "Aunque", "Ni", "Porque", "Pues",
    # conditional and temporal
    "Si", "Cuando", "Mientras", "Antes", "Después", "Entonces", "Luego", "Hasta",
    "Nunca", "Siempre", "Ayer", "Hoy", "Mañana",
    # adverbs
    "Así", "También", "Tampoco", "Ahora", "Allí", "Aquí", "Donde", "Como", "Tan",
    "Aun", "Aún", "Cualquiera", "Nadie", "Ya", "Más", "Menos", "Mucho", "Poco",
    "No", "Sí", "Tal", "Vez", "Bien", "Mal", "Según", "Entre",
    "Solamente", "Simplemente", "Verdaderamente", "Realmente", "Ciertamente",
    # articles and pronouns
    "El", "La", "Los", "Las", "Un", "Una", "Unos", "Unas",
    "Él", "Ella", "Ellos", "Ellas", "Nosotros", "Nosotras", "Vosotros", "Vosotras",
    "Este", "Esta", "Estos", "Estas", "Ese", "Esa", "Esos", "Esas",
    "Aquel", "Aquella", "Aquellos", "Aquellas",
    "Lo", "Le", "Les", "Me", "Te", "Se", "Nos", "Os",
    "Que", "Quien", "Quienes", "Cual", "Cuales", "Cuyo", "Cuya", "Cuyos", "Cuyas",
    "Todo", "Toda", "Todos", "Todas",
    # prepositions
    "A", "De", "En", "Con", "Por", "Para", "Sin", "Sobre", "Tras", "Bajo", "Hacia", "Desde",
    # auxiliaries and frequent sentence-initial verbs
    "Ha", "He", "Han", "Hay", "Has",
    "Fue", "Es", "Son", "Era", "Eran", "Sea", "Sean",
    "Está", "Están", "Estaba", "Estaban", "Esté", "Estén",
    "Había", "Habían", "Haya", "Hayan", "Hizo", "Hicieron", "Hace", "Hacen",
    "Haré", "Harás", "Hará", "Haremos", "Haréis", "Harán",
    "Habrá", "Habrán", "Habremos",
    "Dijo", "Dijeron", "Dice", "Dicen", "Di", "Da", "Dad", "Den",
    "Ven", "Ved", "Vio", "Vieron", "Ve", "Vayan", "Vaya",
    "Toma", "Tomad", "Tomen", "Tomó", "Tomaron",
    "Tendré", "Tendrás", "Tendrá", "Tendremos", "Tendréis", "Tendrán",
    # imperatives
    "Oye", "Oíd", "Escucha", "Escuchad", "Mirad", "Guarda", "Guardad", "Guardaréis",
    "Camina", "Caminad", "Cree", "Creed", "Cread", "Orad", "Ora", "Habla", "Hablad",
    "Daos", "Dáos", "Perdona", "Perdonad", "Perdonen", "Sigue", "Seguid", "Busca", "Buscad",
    "Llama", "Llamad", "Lleven", "Lleva", "Ayuda", "Ayudad", "Confía", "Confiad",
    "Levanta", "Levantad", "Canta", "Cantad", "Bendice", "Bendecid", "Glorifica", "Glorificad",
    "Ama", "Amad", "Teme", "Temed", "Honra", "Honrad", "Alaba", "Alabad",
    "Esforzaos", "Alegraos", "Regocijaos", "Gozaos", "Descansa", "Descansad",
    "Trabaja", "Trabajad", "Vive", "Vivid", "Muere", "Morid", "Persevera", "Perseverad",
    "Lucha", "Luchad", "Resiste", "Resistid", "Sana", "Sanad", "Cura", "Curad",
    "Protege", "Proteged", "Libera", "Liberad", "Construye", "Construid",
    "Edifica", "Edificad", "Siembra", "Sembrad", "Cosecha", "Cosechad",
    # interrogatives
    "Cuándo", "Dónde", "Cómo", "Por qué", "Cuál", "Cuáles", "Quién", "Quiénes", "Qué",
)

# A "letter" is any word character that is neither a digit nor "_", which
# covers accented and other non-ASCII letters.
_NOT_AFTER_LETTER = r"(?<![^\W\d_])"
_NOT_BEFORE_LETTER = r"(?![^\W\d_])"


def _compile_lexicon(words: tuple[str, ...]) -> re.Pattern[str]:
    # Longest first so "Por qué" wins over "Por".
    ordered = sorted(set(words), key=len, reverse=True)
    alternation = "|".join(re.escape(w) for w in ordered)
    return re.compile(f"{_NOT_AFTER_LETTER}(?:{alternation}){_NOT_BEFORE_LETTER}")


DIVINE_PATTERN = _compile_lexicon(DIVINE_EPITHETS)
COMMON_WORD_PATTERN = _compile_lexicon(COMMON_CAPITALIZED_WORDS)


def residual_text(text: str) -> str:
    """Return ``text`` with every whole-word lexicon entry removed."""
    cleaned = DIVINE_PATTERN.sub("", text)
    return COMMON_WORD_PATTERN.sub("", cleaned)


def has_extraction_potential(text: str) -> bool:
    """Check whether a capitalized token survives lexicon stripping."""
    if not text or not text.strip():
        return False
    return any(ch.isupper() for ch in residual_text(text))
