"""
Text metrics for the character counter
Counts, reading-time estimates, character classes, quality scores and
keyword frequency, computed with fixed Unicode-range heuristics
"""

import math
import re
from collections import Counter
from dataclasses import dataclass, field, asdict
from typing import Dict, List, Tuple


JAPANESE_RANGES = r'\u3040-\u309F\u30A0-\u30FF\u4E00-\u9FAF'

# Independent scans; a character may land in zero or several classes
CHARACTER_CLASSES = {
    'hiragana': re.compile(r'[\u3040-\u309F]'),
    'katakana': re.compile(r'[\u30A0-\u30FF]'),
    'kanji': re.compile(r'[\u4E00-\u9FAF]'),
    'alphabet': re.compile(r'[a-zA-Z]'),
    'numbers': re.compile(r'[0-9０-９]'),
    'symbols': re.compile(
        '[' + re.escape('!"#$%&\'()*+,-./:;<=>?@[\\]^_`{|}~')
        + '！＃＄％＆（）＊＋，－．／：；＜＝＞？＠「」『』【】｛｝]'
    ),
    'spaces': re.compile(r'[\s\u3000]'),
}

# (key, display name, limit) in display order
SNS_PLATFORMS: Tuple[Tuple[str, str, int], ...] = (
    ('twitter', 'Twitter / X', 280),
    ('instagram', 'Instagram', 2200),
    ('facebook', 'Facebook', 63206),
    ('linkedin', 'LinkedIn', 3000),
    ('tiktok', 'TikTok', 2200),
    ('youtube', 'YouTube Title', 100),
    ('threads', 'Threads', 500),
    ('bluesky', 'Bluesky', 300),
)

# Per-minute rates: (japanese chars, english words)
READING_RATE = (400, 200)
SPEAKING_RATE = (300, 150)
TYPING_RATE = (100, 40)

SNS_WARNING_PERCENT = 80
TOP_KEYWORD_COUNT = 5


def round_half_up(value):
    """Round like JavaScript Math.round (halves go up)"""
    return math.floor(value + 0.5)


@dataclass(frozen=True)
class Keyword:
    word: str
    count: int
    percentage: float


@dataclass(frozen=True)
class TextStats:
    """Statistics for one input text; empty text gives the all-zero record"""
    characters: int = 0
    characters_no_space: int = 0
    words: int = 0
    sentences: int = 0
    paragraphs: int = 0
    lines: int = 0
    bytes: int = 0
    bytes_utf8: int = 0
    average_word_length: float = 0
    average_sentence_length: float = 0
    reading_time_seconds: float = 0
    speaking_time_seconds: float = 0
    typing_time_seconds: float = 0
    hiragana: int = 0
    katakana: int = 0
    kanji: int = 0
    alphabet: int = 0
    numbers: int = 0
    symbols: int = 0
    spaces: int = 0
    readability_score: float = 0
    complexity_score: float = 0
    diversity_score: float = 0
    top_keywords: Tuple[Keyword, ...] = field(default_factory=tuple)

    # snake_case attribute -> camelCase interchange key
    _KEY_OVERRIDES = {'bytes_utf8': 'bytesUTF8'}

    def to_dict(self) -> Dict:
        """Flat JSON-shaped record with camelCase keys"""
        record = {}
        for name, value in asdict(self).items():
            key = self._KEY_OVERRIDES.get(name) or _camel_case(name)
            record[key] = value
        record['topKeywords'] = [asdict(k) for k in self.top_keywords]
        return record


@dataclass(frozen=True)
class SNSCheck:
    platform: str
    limit: int
    current: int
    remaining: int
    percentage: float
    status: str

    def to_dict(self) -> Dict:
        return asdict(self)


def _camel_case(name):
    head, *rest = name.split('_')
    return head + ''.join(part.capitalize() for part in rest)


class TextAnalyzer:
    """Metrics engine with pre-compiled patterns, all methods pure"""

    _whitespace_pattern = re.compile(r'\s')
    _english_word_pattern = re.compile(r'[a-zA-Z]+')
    _japanese_char_pattern = re.compile(f'[{JAPANESE_RANGES}]')
    _sentence_end_pattern = re.compile(r'[。．.!?！？]')
    _paragraph_split_pattern = re.compile(r'\n\s*\n')
    # re.ASCII keeps \w and \b on ASCII word characters
    _long_word_pattern = re.compile(r'\b\w{8,}\b', re.ASCII)
    _any_word_pattern = re.compile(r'\b\w+\b', re.ASCII)
    _token_pattern = re.compile(f'[\\w{JAPANESE_RANGES}]+', re.ASCII)
    _keyword_pattern = re.compile(
        r'[\u4E00-\u9FAF\u3040-\u309F\u30A0-\u30FF]{2,}|[a-zA-Z]{3,}'
    )

    @classmethod
    def analyze(cls, text: str) -> TextStats:
        """Compute the full statistics record for text"""
        if not text:
            return TextStats()

        characters = len(text)
        characters_no_space = len(cls._whitespace_pattern.sub('', text))

        english_words = cls._english_word_pattern.findall(text)
        japanese_chars = cls._japanese_char_pattern.findall(text)
        words = len(english_words) + math.ceil(len(japanese_chars) / 2)

        sentences = max(len(cls._sentence_end_pattern.findall(text)), 1 if text.strip() else 0)
        paragraphs = cls.count_paragraphs(text)
        lines = len(text.split('\n'))
        byte_count = len(text.encode('utf-8', errors='surrogatepass'))

        average_word_length = characters_no_space / words if words > 0 else 0
        average_sentence_length = words / sentences if sentences > 0 else 0

        mainly_japanese = len(japanese_chars) > len(english_words) * 3
        quantity = characters_no_space if mainly_japanese else words
        rate_index = 0 if mainly_japanese else 1

        classes = cls.count_character_classes(text)

        return TextStats(
            characters=characters,
            characters_no_space=characters_no_space,
            words=words,
            sentences=sentences,
            paragraphs=paragraphs,
            lines=lines,
            bytes=byte_count,
            bytes_utf8=byte_count,
            average_word_length=average_word_length,
            average_sentence_length=average_sentence_length,
            reading_time_seconds=quantity / READING_RATE[rate_index] * 60,
            speaking_time_seconds=quantity / SPEAKING_RATE[rate_index] * 60,
            typing_time_seconds=quantity / TYPING_RATE[rate_index] * 60,
            readability_score=cls.readability_score(text, sentences, words),
            complexity_score=cls.complexity_score(
                text, classes['kanji'], classes['hiragana'] + classes['katakana']
            ),
            diversity_score=cls.diversity_score(text),
            top_keywords=cls.top_keywords(text),
            **classes,
        )

    @classmethod
    def count_paragraphs(cls, text):
        """Non-blank segments between blank lines, at least one for non-blank text"""
        segments = [p for p in cls._paragraph_split_pattern.split(text) if p.strip()]
        return len(segments) or (1 if text.strip() else 0)

    @staticmethod
    def count_character_classes(text) -> Dict[str, int]:
        return {name: len(pattern.findall(text)) for name, pattern in CHARACTER_CLASSES.items()}

    @classmethod
    def readability_score(cls, text, sentences, words):
        """Sentence and paragraph length penalties from a base of 100"""
        if sentences == 0 or words == 0:
            return 0

        average_sentence = words / sentences
        score = 100
        if average_sentence < 10:
            score -= 20
        elif average_sentence > 30:
            score -= 30
        elif average_sentence > 25:
            score -= 15

        paragraphs = [p for p in cls._paragraph_split_pattern.split(text) if p.strip()]
        if words / max(len(paragraphs), 1) > 100:
            score -= 15

        return max(0, min(100, score))

    @classmethod
    def complexity_score(cls, text, kanji, kana):
        """Kanji ratio for Japanese text, long-word ratio otherwise"""
        if not text:
            return 0

        total_japanese = kanji + kana
        if total_japanese == 0:
            long_words = len(cls._long_word_pattern.findall(text))
            total_words = len(cls._any_word_pattern.findall(text))
            return min(100, long_words / total_words * 200) if total_words > 0 else 0

        return min(100, kanji / total_japanese * 150)

    @classmethod
    def diversity_score(cls, text):
        tokens = cls._token_pattern.findall(text.lower())
        if not tokens:
            return 0
        return min(100, len(set(tokens)) / len(tokens) * 120)

    @classmethod
    def top_keywords(cls, text, limit=TOP_KEYWORD_COUNT) -> Tuple[Keyword, ...]:
        """Most frequent keywords; ties keep first-occurrence order"""
        tokens = [word.lower() for word in cls._keyword_pattern.findall(text)]
        if not tokens:
            return ()

        # Counter keeps insertion order and sorted() is stable
        counts = sorted(Counter(tokens).items(), key=lambda item: -item[1])[:limit]
        total = len(tokens)
        return tuple(
            Keyword(word=word, count=count, percentage=round_half_up(count / total * 1000) / 10)
            for word, count in counts
        )

    @staticmethod
    def check_sns(text: str) -> List[SNSCheck]:
        """Length of text against each platform limit, in table order"""
        current = len(text)
        checks = []
        for _key, name, limit in SNS_PLATFORMS:
            remaining = limit - current
            percentage = current / limit * 100
            if remaining < 0:
                status = 'over'
            elif percentage > SNS_WARNING_PERCENT:
                status = 'warning'
            else:
                status = 'ok'
            checks.append(SNSCheck(
                platform=name,
                limit=limit,
                current=current,
                remaining=remaining,
                percentage=percentage,
                status=status,
            ))
        return checks


def analyze_text(text: str) -> TextStats:
    return TextAnalyzer.analyze(text)


def check_sns(text: str) -> List[SNSCheck]:
    return TextAnalyzer.check_sns(text)


_TIME_UNITS = {
    'ja': {'sec': '{}秒', 'min': '{}分', 'hr': '{}時間', 'sep': ''},
    'en': {'sec': '{} sec', 'min': '{} min', 'hr': '{} hr', 'sep': ' '},
}


def format_time(seconds, locale='ja'):
    """
    Human-readable duration, e.g. 90 -> '1分30秒' or '1 min 30 sec'
    """
    units = _TIME_UNITS['ja' if locale == 'ja' else 'en']
    if seconds < 60:
        return units['sec'].format(round_half_up(seconds))

    if seconds < 3600:
        minutes = math.floor(seconds / 60)
        secs = round_half_up(seconds % 60)
        parts = [units['min'].format(minutes)]
        if secs > 0:
            parts.append(units['sec'].format(secs))
        return units['sep'].join(parts)

    hours = math.floor(seconds / 3600)
    minutes = round_half_up((seconds % 3600) / 60)
    parts = [units['hr'].format(hours)]
    if minutes > 0:
        parts.append(units['min'].format(minutes))
    return units['sep'].join(parts)
