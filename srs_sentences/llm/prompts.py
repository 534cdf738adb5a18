GENERATE_SENTENCES_SYSTEM_PROMPT = "You generate Japanese example sentences for SRS study."

GENERATE_SENTENCES_HUMAN_PROMPT = (
    "Target word: {word}\n"
    "Reading: {reading}\n\n"
    "Write example sentences for the numbered definitions below. For each definition, write exactly "
    "the requested number of sentences, each clearly using the word in that sense.\n"
    "{definitions_block}\n\n"
    "Style guidelines:\n{guidelines}\n"
    "Keep each Japanese sentence under {max_chars} characters.\n"
    "Return JSON with an `items` array; each item has `defIndex` (the definition number), "
    "`jp` (the Japanese sentence) and `en` (a natural English translation)."
)

ANALYZE_MEANINGS_SYSTEM_PROMPT = "You analyze Japanese dictionary definitions for SRS study planning."

ANALYZE_MEANINGS_HUMAN_PROMPT = (
    "Target word: {word}\n"
    "Reading: {reading}\n\n"
    "Dictionary meanings:\n{meanings_block}\n\n"
    "For every meaning return an item with `meaningIndex`, `validity` (valid | dubious | not_a_sense), "
    "`studyPriority` (recall | recognize | ignore_for_now), a short `comment` and a list of common "
    "`colocations`."
)
