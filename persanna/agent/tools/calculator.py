"""
计算器工具 (agent/tools/calculator.py)

对数学表达式求值，例如 "2+2"、"(3 + 4) * 2 ** 3"、"sqrt(16) / pi"。

安全设计：
    不使用 eval()，而是用 ast 解析表达式后只对白名单内的节点求值：
    数字常量、+ - * / // % **、一元正负号、括号，以及少量 math 函数与常量。
    其余任何语法（名称访问、属性、调用任意函数等）都会被拒绝。
"""

import ast
import asyncio
import math
import operator
from typing import Any, Callable

from persanna.agent.tools.base import Tool

_BIN_OPS: dict[type, Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}

_UNARY_OPS: dict[type, Callable[[Any], Any]] = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}

_FUNCTIONS: dict[str, Callable[..., Any]] = {
    "sqrt": math.sqrt,
    "abs": abs,
    "round": round,
    "floor": math.floor,
    "ceil": math.ceil,
    "log": math.log,
    "log10": math.log10,
    "exp": math.exp,
    "sin": math.sin,
    "cos": math.cos,
    "tan": math.tan,
}

_CONSTANTS: dict[str, float] = {"pi": math.pi, "e": math.e}

# 防止 9**9**9、(10**10000)**10000 这类表达式耗尽 CPU
MAX_EXPONENT = 10000
MAX_RESULT_BITS = 100_000


def evaluate(expression: str) -> int | float:
    """
    安全地计算一个算术表达式。

    异常:
        ValueError: 表达式为空、语法错误或包含不支持的运算
        ZeroDivisionError: 除以零
    """
    expression = expression.strip().replace("^", "**").replace("×", "*").replace("÷", "/")
    if not expression:
        raise ValueError("Empty expression")
    try:
        tree = ast.parse(expression, mode="eval")
    except SyntaxError as e:
        raise ValueError(f"Invalid expression: {expression}") from e
    return _eval_node(tree.body)


def _eval_node(node: ast.AST) -> Any:
    if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)) and not isinstance(node.value, bool):
        return node.value
    if isinstance(node, ast.BinOp) and type(node.op) in _BIN_OPS:
        left, right = _eval_node(node.left), _eval_node(node.right)
        _check_size(node.op, left, right)
        return _BIN_OPS[type(node.op)](left, right)
    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
        return _UNARY_OPS[type(node.op)](_eval_node(node.operand))
    if isinstance(node, ast.Name) and node.id in _CONSTANTS:
        return _CONSTANTS[node.id]
    if isinstance(node, ast.Call) and isinstance(node.func, ast.Name) and node.func.id in _FUNCTIONS and not node.keywords:
        return _FUNCTIONS[node.func.id](*(_eval_node(arg) for arg in node.args))
    raise ValueError(f"Unsupported expression element: {ast.dump(node)[:60]}")


def _bits(value: Any) -> int:
    """整数部分的位数；浮点数溢出会直接抛 OverflowError，按 1 位估算即可。"""
    if isinstance(value, int):
        return max(1, abs(value).bit_length())
    return 1


def _check_size(op: ast.operator, left: Any, right: Any) -> None:
    """
    在真正计算之前估算结果的位数，超过 MAX_RESULT_BITS 时拒绝。

    乘方：bits(left) * |right|；乘法：bits(left) + bits(right)。
    """
    if isinstance(op, ast.Pow):
        if abs(right) > MAX_EXPONENT:
            raise ValueError(f"Exponent too large: {right}")
        if isinstance(left, int) and abs(left) > 1 and _bits(left) * abs(right) > MAX_RESULT_BITS:
            raise ValueError("Result too large")
    elif isinstance(op, ast.Mult) and _bits(left) + _bits(right) > MAX_RESULT_BITS:
        raise ValueError("Result too large")


def _format_number(value: int | float) -> str:
    """整数值的浮点数去掉多余的 ".0"（4.0 → "4"）。"""
    if isinstance(value, float) and value.is_integer() and abs(value) < 1e16:
        return str(int(value))
    return str(value)


class CalculatorTool(Tool):
    """计算数学表达式的工具。"""

    name = "calculator"
    description = (
        "Useful for getting the result of a math expression. "
        "The input to this tool should be a valid mathematical expression that could be executed by a simple calculator."
    )

    async def run(self, argument: str) -> str:
        # 在线程中求值，推理循环的超时不会被同步计算卡住
        value = await asyncio.to_thread(evaluate, argument)
        return _format_number(value)
