# dbcoach/orchestration/failure_classifier.py
"""
Strict failure classifier with explicit rules.

PHILOSOPHY: When in doubt, classify as fatal (UNKNOWN).
Retrying a request the provider already rejected only burns quota.
"""
import asyncio
import re
from typing import List, Tuple, Union

import aiohttp

from dbcoach.core.exceptions import DBCoachError, ErrorKind


class FailureClassifier:
    """
    Classifies errors into ErrorKind values.

    DECISION TREE:
    1. Already-classified DBCoachError → its own kind
    2. Timeout / aiohttp / OS connection errors → TIMEOUT / NETWORK
    3. FATAL patterns (auth, rejected request) → AUTH / INVALID_REQUEST
    4. RETRYABLE patterns → RATE_LIMITED / UNAVAILABLE / TIMEOUT / NETWORK
    5. Default → UNKNOWN (fatal)
    """

    FATAL_PATTERNS: List[Tuple[str, ErrorKind]] = [
        (r"api[ _-]?key", ErrorKind.AUTH),
        (r"\b401\b", ErrorKind.AUTH),
        (r"\b403\b", ErrorKind.AUTH),
        (r"unauthenticated|unauthori[sz]ed|permission[ _]denied", ErrorKind.AUTH),
        (r"\b400\b", ErrorKind.INVALID_REQUEST),
        (r"bad request|invalid[ _]argument|malformed", ErrorKind.INVALID_REQUEST),
    ]

    RETRYABLE_PATTERNS: List[Tuple[str, ErrorKind]] = [
        (r"rate[ _]?limit", ErrorKind.RATE_LIMITED),
        (r"\b429\b|resource[ _]exhausted|too many requests", ErrorKind.RATE_LIMITED),
        (r"service[ _]unavailable|temporarily unavailable|overloaded", ErrorKind.UNAVAILABLE),
        (r"internal[ _]error|\b50[0234]\b", ErrorKind.UNAVAILABLE),
        (r"time[ _]?out|timed out|deadline[ _]exceeded", ErrorKind.TIMEOUT),
        (r"network[ _]error|connection (?:reset|refused|aborted)|network unreachable", ErrorKind.NETWORK),
    ]

    @classmethod
    def classify(cls, error: Union[BaseException, str]) -> ErrorKind:
        """
        Classify an error.

        Args:
            error: Exception or error string

        Returns:
            ErrorKind classification
        """
        if isinstance(error, DBCoachError):
            return error.kind

        if isinstance(error, (asyncio.TimeoutError, TimeoutError)):
            return ErrorKind.TIMEOUT

        if isinstance(error, (aiohttp.ClientConnectionError, ConnectionError)):
            return ErrorKind.NETWORK

        error_str = str(error)

        # STEP 3: Fatal patterns take priority
        for pattern, kind in cls.FATAL_PATTERNS:
            if re.search(pattern, error_str, re.IGNORECASE):
                return kind

        # STEP 4: Transient patterns
        for pattern, kind in cls.RETRYABLE_PATTERNS:
            if re.search(pattern, error_str, re.IGNORECASE):
                return kind

        # STEP 5: Default to fatal
        return ErrorKind.UNKNOWN

    @classmethod
    def is_retryable(cls, error: Union[BaseException, str]) -> bool:
        return cls.classify(error).retryable
