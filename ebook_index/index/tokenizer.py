"""
Tokenizer for full-text indexing and querying.

Turns raw text into normalized search terms: word splitting, length and
letter filtering, lowercasing, stopword removal, Porter stemming and
order-preserving de-duplication. A metadata pre-pass splits programmer-style
titles and filenames (camelCase, snake_case, dotted names, versions) into
plain words first.

The same Tokenizer instance must be used for indexing and for querying,
otherwise stems will not line up.
"""

import re
from typing import Iterable, List

from nltk.stem.porter import PorterStemmer


ENGLISH_STOPWORDS = frozenset("""
a about above across after afterwards again against all almost alone along
already also although always am among amongst an and another any anybody
anyhow anyone anything anyway anywhere are aren't around as at back be
became because become becomes becoming been before beforehand behind being
below beside besides between beyond both but by can cannot can't could
couldn't did didn't do does doesn't doing done don't down during each either
else elsewhere enough etc even ever every everybody everyone everything
everywhere except few first for former formerly from further had hadn't has
hasn't have haven't having he he'd he'll hence her here hereafter hereby
herein here's hers herself he's him himself his how however how's i i'd if
i'll i'm in indeed instead into is isn't it its it's itself i've just last
latter latterly least less let's like many may maybe me meanwhile might
mine more moreover most mostly much must mustn't my myself namely neither
never nevertheless next no nobody none noone nor not nothing now nowhere of
off often on once one only onto or other others otherwise ought our ours
ourselves out over own per perhaps please put rather same several shall
shan't she she'd she'll she's should shouldn't since so some somebody
somehow someone something sometime sometimes somewhere still such than that
that's the their theirs them themselves then thence there thereafter
thereby therefore therein there's thereupon these they they'd they'll
they're they've this those though through throughout thru thus to together
too toward towards under until unto up upon us very via was wasn't we we'd
we'll well we're were weren't we've what whatever what's when whence
whenever when's where whereafter whereas whereby wherein where's whereupon
wherever whether which while whither who whoever whole whom whose who's why
why's will with within without won't would wouldn't yet you you'd you'll
your you're yours yourself yourselves you've
aren couldn didn doesn don hadn hasn haven isn mustn shan shouldn wasn weren
won wouldn
""".split())

_WORD_PATTERN = re.compile(r"[^\W_]+")
_ASCII_LETTER = re.compile(r"[A-Za-z]")

# Applied in order by Tokenizer.preprocess_metadata.
_METADATA_RULES = (
    (re.compile(r"([a-z0-9])([A-Z])"), r"\1 \2"),
    (re.compile(r"(\d+)\.(\d+)"), r"\1 \2"),
    (re.compile(r"\.+"), " "),
    (re.compile(r"_+"), " "),
    (re.compile(r"-+"), " "),
    (re.compile(r"([A-Za-z])(\d+)"), r"\1 \2"),
    (re.compile(r"(\d+)([A-Za-z])"), r"\1 \2"),
    (re.compile(r"\s+"), " "),
)


class Tokenizer:
    """
    Text-to-terms pipeline shared by the index and the query service.

    Attributes:
        min_length: Tokens shorter than this are dropped.
        remove_stopwords: Whether to drop stopwords.
        use_stemming: Whether to apply the Porter stemmer.
        stopwords: Effective stopword set (English list plus extras).
    """

    def __init__(
        self,
        min_length: int = 3,
        remove_stopwords: bool = True,
        use_stemming: bool = True,
        extra_stopwords: Iterable[str] = ()
    ):
        self.min_length = min_length
        self.remove_stopwords = remove_stopwords
        self.use_stemming = use_stemming
        self.stopwords = ENGLISH_STOPWORDS | {word.lower() for word in extra_stopwords}
        self._stemmer = PorterStemmer(mode=PorterStemmer.ORIGINAL_ALGORITHM)

    @classmethod
    def from_config(cls, tokenization_config) -> "Tokenizer":
        """Build a tokenizer from a TokenizationConfig section."""
        return cls(
            min_length=tokenization_config.min_token_length,
            remove_stopwords=tokenization_config.remove_stopwords,
            use_stemming=tokenization_config.use_stemming,
            extra_stopwords=tokenization_config.custom_stopwords
        )

    def tokenize(self, text) -> List[str]:
        """
        Tokenize text into unique normalized terms.

        Args:
            text: Raw text. Empty or non-string input yields [].

        Returns:
            Terms in first-seen order, without duplicates.
        """
        if not text or not isinstance(text, str):
            return []

        terms = []
        seen = set()

        for raw in _WORD_PATTERN.findall(text):
            if len(raw) < self.min_length or not _ASCII_LETTER.search(raw):
                continue

            token = raw.lower()
            if self.remove_stopwords and token in self.stopwords:
                continue

            if self.use_stemming:
                token = self._stemmer.stem(token, to_lowercase=False)

            if token not in seen:
                seen.add(token)
                terms.append(token)

        return terms

    def preprocess_metadata(self, text) -> str:
        """
        Split programmer-style names into plain words.

        "deepLearning_v2.1-final" becomes "deep Learning v 2 1 final".

        Args:
            text: A title, author or filename.

        Returns:
            Preprocessed text, "" for empty or non-string input.
        """
        if not text or not isinstance(text, str):
            return ""

        processed = text
        for pattern, replacement in _METADATA_RULES:
            processed = pattern.sub(replacement, processed)

        return processed.strip()

    def tokenize_metadata(self, text) -> List[str]:
        """Tokenize a title or author after metadata preprocessing."""
        return self.tokenize(self.preprocess_metadata(text))
