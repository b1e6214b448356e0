"""Canned analyses used by the offline mock provider.

Keyed by the coarse error type from ``detection.detect_error_type``. Every
entry clears the response quality gate (explanation and solution >= 50 chars).
"""

from __future__ import annotations

CANNED_RESPONSES: dict[str, dict] = {
    "general": {
        "explanation": (
            "This appears to be a software error requiring systematic analysis. The error may involve "
            "program logic or runtime behavior that needs careful debugging to identify the root cause."
        ),
        "solution": (
            "Apply systematic debugging: 1) verify variable declarations and types, 2) check control flow, "
            "3) validate input and output expectations, 4) add error handling for edge cases."
        ),
        "codeExample": (
            "def debug_value(value, context):\n"
            "    print(f\"[DEBUG] {context}: {value!r} ({type(value).__name__})\")\n"
            "    if value is None:\n"
            "        raise ValueError(f\"Invalid value in {context}\")\n"
            "    return value"
        ),
        "category": "general",
        "tags": ["debugging", "general", "runtime"],
        "confidence": 0.4,
    },
    "type": {
        "explanation": (
            "A TypeError occurs when an operation is performed on a value of the wrong type, most often "
            "accessing a property on undefined or null, or calling something that is not a function."
        ),
        "solution": (
            "Guard the value before use: use optional chaining (?.) for property access, add typeof or "
            "instanceof checks, validate function parameters and supply defaults with ??."
        ),
        "codeExample": (
            "// Problem\nconst name = user.profile.name;\n\n"
            "// Fix\nconst name = user?.profile?.name ?? 'Guest';"
        ),
        "category": "runtime",
        "tags": ["javascript", "runtime", "null-safety"],
        "confidence": 0.95,
        "preventionTips": [
            "Use TypeScript with strict null checks enabled",
            "Validate input at function boundaries",
        ],
    },
    "scope": {
        "explanation": (
            "A ReferenceError or NameError occurs when code uses a variable or function that has not been "
            "declared in the current scope, usually because of a typo, a missing import or use before definition."
        ),
        "solution": (
            "Declare the name before it is used, check its spelling, make sure the defining module is "
            "imported and that the variable is visible from the scope that reads it."
        ),
        "codeExample": "# Problem\nprint(user_name)\n\n# Fix\nuser_name = \"John\"\nprint(user_name)",
        "category": "scope",
        "tags": ["scope", "variables", "imports"],
        "confidence": 0.9,
    },
    "syntax": {
        "explanation": (
            "A SyntaxError means the source violates the language grammar: an unclosed bracket or string, "
            "an invalid operator, inconsistent indentation or a misplaced keyword."
        ),
        "solution": (
            "Check the reported line and the one before it for unbalanced brackets and quotes. Run a linter "
            "and formatter so grammar mistakes are caught before the code runs."
        ),
        "codeExample": "// Problem\nfunction test() {\n  console.log('hello');\n\n// Fix\nfunction test() {\n  console.log('hello');\n}",
        "category": "syntax",
        "tags": ["syntax", "parsing"],
        "confidence": 0.95,
    },
    "index": {
        "explanation": (
            "An index error occurs when a list or array is accessed with an index outside its bounds, "
            "typically an off-by-one loop condition or an access into an empty collection."
        ),
        "solution": (
            "Loop with i < length rather than i <= length, check the collection is non-empty before "
            "indexing and prefer iteration helpers over manual index arithmetic."
        ),
        "codeExample": "items = [1, 2, 3]\nfor item in items:\n    print(item)\n\nlast = items[-1] if items else None",
        "category": "runtime",
        "tags": ["array", "indexing", "off-by-one"],
        "confidence": 0.95,
    },
    "dependency": {
        "explanation": (
            "An import error occurs when a module cannot be found or loaded: the package is not installed, "
            "the module name is misspelled or two modules import each other circularly."
        ),
        "solution": (
            "Install the missing package into the active environment, verify the module name and the "
            "search path, and break circular imports by moving shared code into a separate module."
        ),
        "codeExample": "# pip install requests\nimport requests",
        "category": "dependency",
        "tags": ["imports", "dependencies", "modules"],
        "confidence": 0.85,
    },
    "network": {
        "explanation": (
            "Network errors happen during HTTP requests or socket connections because of CORS rules, "
            "timeouts, an unreachable server or a wrong endpoint."
        ),
        "solution": (
            "Check the endpoint and CORS configuration, set explicit timeouts, handle non-2xx responses "
            "and retry transient failures with exponential backoff."
        ),
        "codeExample": (
            "try {\n  const response = await fetch(url);\n"
            "  if (!response.ok) throw new Error(`HTTP ${response.status}`);\n"
            "  const data = await response.json();\n} catch (error) {\n  console.error('Network error:', error);\n}"
        ),
        "category": "network",
        "tags": ["network", "http", "timeout"],
        "confidence": 0.8,
    },
    "algorithm": {
        "explanation": (
            "The program exceeded a time or stack limit, which points at unbounded recursion, a missing "
            "base case or an algorithm whose complexity is too high for the input size."
        ),
        "solution": (
            "Verify base cases and loop termination, trace the algorithm on small inputs and replace "
            "quadratic steps with hash lookups, binary search or memoization where possible."
        ),
        "codeExample": (
            "from functools import lru_cache\n\n@lru_cache(maxsize=None)\n"
            "def fib(n):\n    return n if n < 2 else fib(n - 1) + fib(n - 2)"
        ),
        "category": "algorithm",
        "tags": ["algorithm", "complexity", "recursion"],
        "confidence": 0.9,
    },
    "logic": {
        "explanation": (
            "A logic error produces wrong results without crashing: an incorrect conditional, a wrong "
            "operator or formula, or an assumption about the input that does not hold."
        ),
        "solution": (
            "State the expected and actual behavior precisely, trace the code with concrete values, "
            "check operator precedence and add assertions for the assumptions the code relies on."
        ),
        "codeExample": "def average(numbers):\n    if not numbers:\n        return 0\n    return sum(numbers) / len(numbers)",
        "category": "logic",
        "tags": ["logic", "conditional", "testing"],
        "confidence": 0.85,
    },
}

_ALIASES = {
    "runtime": "general",
    "reference": "scope",
    "name": "scope",
    "import": "dependency",
    "indentation": "syntax",
    "mathematical": "logic",
}


def canned_response(error_type: str | None) -> dict:
    """Canned JSON-ready analysis for an error type (general when unknown)."""
    key = (error_type or "").strip().lower()
    key = _ALIASES.get(key, key)
    return dict(CANNED_RESPONSES.get(key, CANNED_RESPONSES["general"]))
