"""Recovery parser for JSON returned by generative-AI stages."""

import ast
import json
import logging
import re
from typing import Any, Callable, Dict, List, Optional, Tuple

from .errors import ResponseParseError, StageValidationError

logger = logging.getLogger(__name__)

_WORD_PATTERN = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


class AIResponseParser:
    """
    Recover a JSON value from a model completion that was asked to return JSON.

    Strategies are attempted in order and the first success wins:
    1. Direct parse of the raw text
    2. Fence stripping plus balanced-span extraction
    3. Conservative textual repairs on the span
    4. Truncation after the last closing delimiter plus inner-quote escaping
    5. Literal evaluation (``ast.literal_eval``) of object/array-looking text

    If nothing works a ResponseParseError is raised with the attempt log.
    """

    FENCE_PATTERN = re.compile(r"```[a-zA-Z0-9_-]*[ \t]*")
    TRAILING_COMMA_PATTERN = re.compile(r",(\s*[}\]])")
    SINGLE_QUOTED_KEY_PATTERN = re.compile(r"'([^']*)'(\s*:)")
    SINGLE_QUOTED_VALUE_PATTERN = re.compile(r":\s*'([^']*)'")
    BARE_KEY_PATTERN = re.compile(r"([{,]\s*)([a-zA-Z_][a-zA-Z0-9_]*)\s*:")
    NON_JSON_LITERAL_PATTERN = re.compile(r"([:\[,]\s*)(-Infinity|Infinity|NaN|undefined)\b")
    CODE_RED_FLAGS = re.compile(r"[()=;`]")

    @staticmethod
    def parse(content: Optional[str]) -> Any:
        """
        Parse an AI response into a JSON value.

        Args:
            content: Raw completion text

        Returns:
            Parsed dict or list

        Raises:
            ResponseParseError: If all recovery strategies fail
        """
        raw = content if isinstance(content, str) else ("" if content is None else str(content))
        attempts: List[Dict[str, str]] = []

        ok, value = AIResponseParser._try_loads(raw, "direct", attempts)
        if ok:
            return value

        clean = AIResponseParser.FENCE_PATTERN.sub("", raw.strip()).strip()
        span = AIResponseParser.extract_balanced_span(clean)
        if span is not None:
            clean = span

        ok, value = AIResponseParser._try_loads(clean, "extracted", attempts)
        if ok:
            return value

        before_fixes = clean
        clean = AIResponseParser.apply_basic_fixes(clean)
        ok, value = AIResponseParser._try_loads(clean, "basic_fixes", attempts)
        if ok:
            logger.debug("Recovered AI response after basic repairs")
            return value

        clean = AIResponseParser.truncate_after_last_delimiter(clean)
        clean = AIResponseParser.escape_inner_quotes(clean)
        ok, value = AIResponseParser._try_loads(clean, "aggressive_fixes", attempts)
        if ok:
            logger.debug("Recovered AI response after aggressive repairs")
            return value

        if re.match(r"^\s*[{\[]", clean) and not AIResponseParser.CODE_RED_FLAGS.search(clean):
            try:
                return AIResponseParser.literal_evaluate(clean)
            except (ValueError, SyntaxError, TypeError, MemoryError, RecursionError) as e:
                attempts.append({"method": "literal_eval", "error": str(e)})

        logger.error(
            "All JSON parsing attempts failed: attempts=%s, content_length=%d, "
            "after_extraction=%r, after_fixes=%r, head=%r, tail=%r",
            [a["method"] for a in attempts],
            len(raw),
            before_fixes[:200],
            clean[:200],
            raw[:200],
            raw[-200:],
        )
        raise ResponseParseError.exhausted(attempts, raw)

    @staticmethod
    def _try_loads(text: str, method: str, attempts: List[Dict[str, str]]) -> Tuple[bool, Any]:
        try:
            return True, json.loads(text, parse_constant=_reject_constant)
        except (ValueError, RecursionError) as e:
            attempts.append({"method": method, "error": str(e)})
            return False, None

    @staticmethod
    def extract_balanced_span(text: str) -> Optional[str]:
        """
        Slice the first balanced ``{...}`` or ``[...]`` span out of text.

        Nesting depth is tracked only outside double-quoted strings, and
        backslash escapes inside strings are honoured.

        Args:
            text: Text that may contain JSON surrounded by prose

        Returns:
            The balanced span, or None when there is no opener or it never closes
        """
        starts = [i for i in (text.find("{"), text.find("[")) if i != -1]
        if not starts:
            return None
        start = min(starts)

        depth = 0
        in_string = False
        escape_next = False

        for i in range(start, len(text)):
            char = text[i]
            if escape_next:
                escape_next = False
                continue
            if in_string:
                if char == "\\":
                    escape_next = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char in "{[":
                depth += 1
            elif char in "}]":
                depth -= 1
                if depth == 0:
                    return text[start:i + 1]
        return None

    @staticmethod
    def apply_basic_fixes(text: str) -> str:
        """
        Trailing commas, single quotes, bare keys and non-JSON literals.

        Repairs only touch text outside double-quoted strings. Single quotes
        are converted first so the remaining repairs also skip the strings
        they produce.
        """
        text = _outside_strings(text, AIResponseParser._fix_quotes)
        return _outside_strings(text, AIResponseParser._fix_structure)

    @staticmethod
    def _fix_quotes(segment: str) -> str:
        segment = AIResponseParser.SINGLE_QUOTED_KEY_PATTERN.sub(r'"\1"\2', segment)
        return AIResponseParser.SINGLE_QUOTED_VALUE_PATTERN.sub(r': "\1"', segment)

    @staticmethod
    def _fix_structure(segment: str) -> str:
        segment = AIResponseParser.TRAILING_COMMA_PATTERN.sub(r"\1", segment)
        segment = AIResponseParser.BARE_KEY_PATTERN.sub(r'\1"\2":', segment)
        return AIResponseParser.NON_JSON_LITERAL_PATTERN.sub(r"\1null", segment)

    @staticmethod
    def truncate_after_last_delimiter(text: str) -> str:
        end = max(text.rfind("}"), text.rfind("]"))
        if end == -1:
            return text
        return text[:end + 1]

    @staticmethod
    def escape_inner_quotes(text: str) -> str:
        """
        Escape double quotes that appear inside string values.

        A quote inside a string only closes it when the next non-space
        character is a structural one (``, : } ]``) or the end of input.
        """
        out: List[str] = []
        in_string = False
        escape_next = False
        length = len(text)

        for i, char in enumerate(text):
            if escape_next:
                escape_next = False
                out.append(char)
                continue
            if in_string and char == "\\":
                escape_next = True
                out.append(char)
                continue
            if char == '"':
                if not in_string:
                    in_string = True
                    out.append(char)
                    continue
                j = i + 1
                while j < length and text[j] in " \t\r\n":
                    j += 1
                if j >= length or text[j] in ",:}]":
                    in_string = False
                    out.append(char)
                else:
                    out.append('\\"')
                continue
            if in_string and char == "\n":
                out.append("\\n")
                continue
            out.append(char)
        return "".join(out)

    @staticmethod
    def literal_evaluate(text: str) -> Any:
        """
        Evaluate object/array literal text without executing code.

        JSON keywords are mapped to Python literals outside of strings, the
        text goes through ``ast.literal_eval`` and the result is round-tripped
        through ``json`` so the returned value is always valid JSON.
        """
        python_text = _js_keywords_to_python(text)
        result = ast.literal_eval(python_text)
        if not isinstance(result, (dict, list)):
            raise ValueError(f"Evaluated value is not an object or array: {type(result).__name__}")
        return json.loads(json.dumps(result, allow_nan=False))

    @staticmethod
    def validate_json_structure(
        data: Any,
        required_fields: Optional[List[str]] = None,
        stage: str = "AI response",
    ) -> Dict[str, Any]:
        """
        Check that parsed data is an object with the required top-level keys.

        Args:
            data: Parsed JSON value
            required_fields: Keys that must be present and non-null
            stage: Stage name used in the error message

        Returns:
            The data unchanged

        Raises:
            StageValidationError: If data is not a dict or keys are missing
        """
        if not isinstance(data, dict):
            raise StageValidationError.invalid(stage, f"expected a JSON object, got {type(data).__name__}")

        if required_fields:
            missing = [name for name in required_fields if data.get(name) is None]
            if missing:
                raise StageValidationError.missing_fields(stage, missing)

        return data


def _reject_constant(name: str):
    # JSON.parse rejects these; keep Python's json consistent with it.
    raise ValueError(f"Non-JSON literal {name}")


def _outside_strings(text: str, repair: Callable[[str], str]) -> str:
    """Apply repair to every stretch of text that is not inside a double-quoted string."""
    out: List[str] = []
    start = 0
    in_string = False
    escape_next = False

    for i, char in enumerate(text):
        if in_string:
            if escape_next:
                escape_next = False
            elif char == "\\":
                escape_next = True
            elif char == '"':
                in_string = False
                out.append(text[start:i + 1])
                start = i + 1
            continue
        if char == '"':
            out.append(repair(text[start:i]))
            start = i
            in_string = True

    tail = text[start:]
    out.append(tail if in_string else repair(tail))
    return "".join(out)


def _js_keywords_to_python(text: str) -> str:
    mapping = {"true": "True", "false": "False", "null": "None"}
    out: List[str] = []
    quote: Optional[str] = None
    escape_next = False
    i = 0

    while i < len(text):
        char = text[i]
        if quote:
            out.append(char)
            if escape_next:
                escape_next = False
            elif char == "\\":
                escape_next = True
            elif char == quote:
                quote = None
            i += 1
            continue
        if char in "'\"":
            quote = char
            out.append(char)
            i += 1
            continue
        match = _WORD_PATTERN.match(text, i)
        if match:
            word = match.group(0)
            out.append(mapping.get(word, word))
            i += len(word)
            continue
        out.append(char)
        i += 1
    return "".join(out)


def parse_ai_response(content: Optional[str]) -> Any:
    """Module-level shortcut for AIResponseParser.parse."""
    return AIResponseParser.parse(content)
