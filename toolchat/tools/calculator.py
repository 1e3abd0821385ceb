"""
Calculator Tool

Evaluates arithmetic expressions with SymPy's parser and numeric evaluator.
Input is checked token by token before it reaches the parser: only numbers,
operators, parentheses and an allow-list of function and constant names are
accepted, so no attribute access or arbitrary names can be evaluated.

Supports scientific calculator syntax including:
- Factorial notation: 5!
- Caret exponentiation: 2^16
- Degree notation: sin(30 degrees)
"""

import logging
import re

from pydantic import BaseModel, Field
from sympy import N, Pow, factorial, factorial2, gamma, postorder_traversal
from sympy.parsing.sympy_parser import (
    parse_expr,
    standard_transformations,
    implicit_multiplication_application,
    convert_xor,
    factorial_notation,
)

logger = logging.getLogger(__name__)

TRANSFORMATIONS = (
    standard_transformations
    + (implicit_multiplication_application,)
    + (convert_xor,)  # 2^16 -> 2**16
    + (factorial_notation,)  # 5! -> factorial(5)
)

UNEVALUATED_FUNCTIONS = {
    "factorial": lambda n: factorial(n, evaluate=False),
    "factorial2": lambda n: factorial2(n, evaluate=False),
}

ALLOWED_NAMES = frozenset(
    {
        "sqrt", "cbrt", "root", "exp", "log", "ln",
        "sin", "cos", "tan", "asin", "acos", "atan", "atan2",
        "sinh", "cosh", "tanh",
        "abs", "Abs", "floor", "ceiling", "factorial", "Max", "Min",
        "pi", "E", "e", "oo",
    }
)

MAX_EXPRESSION_LENGTH = 200
MAX_EXPONENT = 10000
MAX_FACTORIAL = 1000

# Numbers, identifiers, operators and whitespace; anything else is rejected.
TOKEN_PATTERN = re.compile(
    r"\s*(?:(?P<number>\d+(?:\.\d*)?|\.\d+)|(?P<name>[A-Za-z]+)|(?P<op>\*\*|[-+*/^%!(),]))"
)


class CalculatorInput(BaseModel):
    expression: str = Field(description='Mathematical expression, e.g. "2 + 2" or "sqrt(16)"')


def preprocess_expression(expression: str) -> str:
    """
    Preprocess expression for SymPy compatibility.

    Handles:
        - Degree notation: sin(30 degrees) -> sin(30 * pi / 180)
        - ceil function: ceil(x) -> ceiling(x) (SymPy naming)
        - Euler's number: e -> E
    """
    degree_pattern = r"(\d+(?:\.\d+)?)\s*(?:degrees?|deg)\b"
    expression = re.sub(degree_pattern, r"(\1 * pi / 180)", expression, flags=re.IGNORECASE)
    expression = re.sub(r"\bceil\b", "ceiling", expression)
    expression = re.sub(r"\be\b", "E", expression)
    return expression


def check_tokens(expression: str) -> None:
    """
    Reject anything that is not plain arithmetic.

    Raises:
        ValueError: On an unexpected character or a name outside the allow-list.
    """
    pos = 0
    expression = expression.rstrip()
    while pos < len(expression):
        match = TOKEN_PATTERN.match(expression, pos)
        if not match:
            raise ValueError(f"Unexpected character {expression[pos:].lstrip()[:1]!r}")
        name = match.group("name")
        if name is not None and name not in ALLOWED_NAMES:
            raise ValueError(f"Unknown function or name: {name}")
        pos = match.end()


def _magnitude(value) -> float:
    return abs(complex(N(value)))


def check_growth(expr) -> None:
    """Reject powers and factorials too large to evaluate."""
    for node in postorder_traversal(expr):
        if isinstance(node, Pow) and node.exp.is_number:
            if _magnitude(node.exp) > MAX_EXPONENT:
                raise ValueError(f"Exponent is larger than {MAX_EXPONENT}")
        elif isinstance(node, (factorial, factorial2, gamma)) and node.args[0].is_number:
            if _magnitude(node.args[0]) > MAX_FACTORIAL:
                raise ValueError(f"Factorial argument is larger than {MAX_FACTORIAL}")


def calculate(expression: str) -> dict:
    """
    Evaluate a mathematical expression.

    Supports:
    - Basic arithmetic: 2 + 2, 10 * 5
    - Exponentiation: 2^10 or 2**10
    - Factorial: 5! or factorial(5)
    - Trig functions: sin(30 degrees), cos(pi/4)
    - Math functions: sqrt(16), log(100), exp(2)
    - Constants: pi, e

    Args:
        expression: Mathematical expression as a string

    Returns:
        ``{expression, result, success: True}`` or
        ``{expression, error, success: False}``
    """
    if not expression or not expression.strip():
        return {"expression": expression, "error": "Expression is empty", "success": False}

    if len(expression) > MAX_EXPRESSION_LENGTH:
        return {
            "expression": expression,
            "error": f"Expression is longer than {MAX_EXPRESSION_LENGTH} characters",
            "success": False,
        }

    try:
        processed_expr = preprocess_expression(expression)
        check_tokens(processed_expr)

        # evaluate=False keeps huge integer powers symbolic until N() takes
        # them numerically. It does not reach factorials, so those are bound
        # to unevaluated constructors.
        expr = parse_expr(
            processed_expr,
            local_dict=dict(UNEVALUATED_FUNCTIONS),
            transformations=TRANSFORMATIONS,
            evaluate=False,
        )
        check_growth(expr)
        result = complex(N(expr))

        if result.imag != 0:
            raise ValueError("Result is not a real number")
        result = result.real
        if result != result or result in (float("inf"), float("-inf")):
            raise ValueError("Result is not a finite number")

        if result.is_integer():
            result = int(result)

        return {"expression": expression, "result": result, "success": True}

    except SyntaxError as e:
        logger.debug("Syntax error parsing expression '%s': %s", expression, e)
        return {"expression": expression, "error": f"Syntax error: {e.msg or e}", "success": False}
    except (ValueError, TypeError, ZeroDivisionError, OverflowError) as e:
        logger.debug("Value/Type error evaluating '%s': %s", expression, e)
        return {"expression": expression, "error": str(e) or "Invalid expression", "success": False}
    except Exception as e:
        logger.debug("Calculation error for '%s': %s", expression, e)
        error = f"Invalid expression: {e}" if str(e) else "Invalid expression"
        return {"expression": expression, "error": error, "success": False}


def _handle_calculate(params: CalculatorInput) -> dict:
    logger.info("Calculating: %s", params.expression)
    return calculate(params.expression)


# Register tool with the registry
def _register():
    from .registry import ToolRegistry

    ToolRegistry.register(
        name="calculator",
        description=(
            "Perform mathematical calculations. Use when the user asks to calculate something."
        ),
        input_model=CalculatorInput,
        handler=_handle_calculate,
    )


_register()
