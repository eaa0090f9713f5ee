#
import re

VOWEL_Y_RE = re.compile(r"[aeiou]y$")
ES_SUFFIX_RE = re.compile(r"(s|x|z|ch|sh)$")


def pluralize(word: str) -> str:
    """
    English plural of a model name, eg. "User" => "Users", "Category" => "Categories", "Box" => "Boxes"
    """
    if not word:
        return word
    lower = word.lower()
    if lower.endswith("y") and not VOWEL_Y_RE.search(lower):
        return word[:-1] + "ies"
    if ES_SUFFIX_RE.search(lower):
        return word + "es"
    return word + "s"
