from __future__ import annotations

import ast
import re
from dataclasses import dataclass
from typing import AbstractSet, List, Optional, Sequence, Tuple

__all__ = [
    "FormulaPart",
    "ParsedFormula",
    "split_formula",
    "split_terms",
    "is_random_term",
    "random_groups",
    "term_variables",
    "bare_variable",
    "clean_names",
    "parse_formula",
    "R_LITERALS",
    "PYTHON_LITERALS",
]

# Tokens that parse as identifiers but are constants, per formula dialect.
R_LITERALS = frozenset(
    {"TRUE", "FALSE", "T", "F", "NA", "NULL", "Inf", "NaN", "pi", "True", "False", "None"}
)
# patsy resolves every other name against the data first.
PYTHON_LITERALS = frozenset({"True", "False", "None"})
SMOOTHERS = frozenset({"s", "te", "ti", "t2", "qss"})
_INTERCEPT_TERMS = frozenset({"", "0", "1", "-1", "+1", "."})
_R_OPERATOR = re.compile(r"%[^%]*%")
_IDENTIFIER = re.compile(r"(?<![A-Za-z0-9_.])[A-Za-z_.][A-Za-z0-9_.]*")


@dataclass(frozen=True)
class FormulaPart:
    """Variables referenced by one `|`-separated part of a formula."""

    fixed: Tuple[str, ...] = ()
    random: Tuple[str, ...] = ()
    smooth: Tuple[str, ...] = ()
    # variables with random slopes, e.g. `x` in `(x | g)`
    slopes: Tuple[str, ...] = ()

    @property
    def variables(self) -> Tuple[str, ...]:
        return _unique(self.fixed + self.smooth + self.slopes + self.random)


@dataclass(frozen=True)
class ParsedFormula:
    response: Tuple[str, ...]
    parts: Tuple[FormulaPart, ...]

    @property
    def main(self) -> FormulaPart:
        return self.parts[0] if self.parts else FormulaPart()


def _unique(names: Sequence[str]) -> Tuple[str, ...]:
    out: List[str] = []
    for n in names:
        if n not in out:
            out.append(n)
    return tuple(out)


def _top_level_split(text: str, seps: str) -> List[str]:
    """Split `text` on any char in `seps` that is outside brackets and quotes."""
    return [part for _, part in _split_with_ops(text, seps)]


def _split_with_ops(text: str, seps: str) -> List[Tuple[str, str]]:
    """Like `_top_level_split`, pairing each part with the separator before it."""
    parts: List[Tuple[str, str]] = []
    op = ""
    buf: List[str] = []
    depth = 0
    quote: Optional[str] = None
    for ch in text:
        if quote is not None:
            buf.append(ch)
            if ch == quote:
                quote = None
            continue
        if ch in "\"'`":
            quote = ch
            buf.append(ch)
            continue
        if ch in "([{":
            depth += 1
        elif ch in ")]}":
            depth -= 1
        if depth == 0 and ch in seps:
            parts.append((op, "".join(buf).strip()))
            buf = []
            op = ch
            continue
        buf.append(ch)
    parts.append((op, "".join(buf).strip()))
    return parts


def split_formula(text: str) -> Tuple[str, List[str]]:
    """Split a formula into its left-hand side and `|`-separated right-hand parts.

    A one-sided formula (``"~ c"``) has an empty left-hand side.
    """
    sides = _top_level_split(str(text), "~")
    if len(sides) == 1:
        lhs, rhs = "", sides[0]
    else:
        lhs, rhs = sides[0], "~".join(sides[1:])
    return lhs, _top_level_split(rhs, "|")


def split_terms(rhs: str) -> List[str]:
    """Split a right-hand side into terms, dropping intercept tokens.

    Terms removed with `-` (``a + b - b``) are dropped. Variables of an
    interaction are kept (``a*b - b`` still uses ``b``).
    """
    signed = _split_with_ops(rhs, "+-")
    removed = {t for op, t in signed if op == "-"}
    out: List[str] = []
    for op, term in signed:
        if op == "-":
            continue
        pieces = _top_level_split(term, "*:/")
        if len(pieces) == 1 and term in removed:
            continue
        out.extend(p for p in pieces if p not in _INTERCEPT_TERMS)
    return out


def _wrapped(term: str) -> bool:
    """True if the outermost brackets of `term` enclose all of it."""
    if not (term.startswith("(") and term.endswith(")")):
        return False
    depth = 0
    for i, ch in enumerate(term):
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        if depth == 0 and i < len(term) - 1:
            return False
    return True


def _strip_parens(term: str) -> str:
    term = term.strip()
    while _wrapped(term):
        term = term[1:-1].strip()
    return term


def is_random_term(term: str) -> bool:
    """True for lme4-style random terms such as ``(1 | g)`` or ``(x || g)``."""
    term = term.strip()
    if not _wrapped(term):
        return False
    return len(_top_level_split(_strip_parens(term), "|")) > 1


def random_groups(term: str, literals: AbstractSet[str] = R_LITERALS) -> Tuple[str, ...]:
    """Grouping factors of a random term; nested groups are split into bare names."""
    pieces = _top_level_split(_strip_parens(term), "|")
    group = pieces[-1]
    names: List[str] = []
    for g in _top_level_split(group, "/:"):
        names.extend(term_variables(g, literals))
    return _unique(names)


def _random_slopes(term: str, literals: AbstractSet[str]) -> Tuple[str, ...]:
    pieces = _top_level_split(_strip_parens(term), "|")
    names: List[str] = []
    for t in split_terms(pieces[0]):
        names.extend(term_variables(t, literals))
    return _unique(names)


def _dotted(node: ast.AST) -> Optional[str]:
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        base = _dotted(node.value)
        return None if base is None else f"{base}.{node.attr}"
    return None


def _call_name(node: ast.Call) -> Optional[str]:
    name = _dotted(node.func)
    if name is None:
        return None
    return name.rsplit(".", 1)[-1]


def _collect(node: ast.AST, out: List[str], literals: AbstractSet[str]) -> None:
    if isinstance(node, (ast.Name, ast.Attribute)):
        name = _dotted(node)
        if name is not None and name not in literals:
            out.append(name)
        elif name is None and isinstance(node, ast.Attribute):
            _collect(node.value, out, literals)
        return
    if isinstance(node, ast.Call):
        # patsy quoting: Q("my var")
        if _call_name(node) == "Q" and node.args:
            arg = node.args[0]
            if isinstance(arg, ast.Constant) and isinstance(arg.value, str):
                out.append(arg.value)
                return
        for arg in node.args:
            _collect(arg, out, literals)
        return
    if isinstance(node, ast.Subscript):
        _collect(node.value, out, literals)
        return
    for child in ast.iter_child_nodes(node):
        _collect(child, out, literals)


def _parse_expr(expr: str) -> Optional[ast.AST]:
    text = expr.strip()
    if len(text) > 1 and text.startswith("`") and text.endswith("`"):
        return ast.Name(id=text[1:-1], ctx=ast.Load())
    try:
        return ast.parse(text, mode="eval").body
    except SyntaxError:
        return None


def term_variables(term: str, literals: AbstractSet[str] = R_LITERALS) -> Tuple[str, ...]:
    """Return the source variables referenced by a single term expression.

    Function names, keyword arguments and literal tokens are not variables:
    ``log(x)`` -> ``("x",)``, ``scale(x, center = TRUE)`` -> ``("x",)``,
    ``I(x**2) + z`` -> ``("x", "z")``.
    """
    node = _parse_expr(term)
    if node is None:
        # Not Python syntax (e.g. R's %in%); fall back to a token scan.
        text = _R_OPERATOR.sub(" ", term)
        tokens = []
        for m in _IDENTIFIER.finditer(text):
            if text[m.end():].lstrip().startswith("("):
                continue
            if m.group() not in literals:
                tokens.append(m.group())
        return _unique(tokens)
    out: List[str] = []
    _collect(node, out, literals)
    return _unique(out)


def bare_variable(expr: str, literals: AbstractSet[str] = R_LITERALS) -> Optional[str]:
    """Return the one variable wrapped by a transform expression, else None."""
    names = term_variables(expr, literals)
    if len(names) != 1:
        return None
    return names[0]


def clean_names(names: Sequence[str], literals: AbstractSet[str] = R_LITERALS) -> List[str]:
    """Strip transforms from names: ``["log(x)", "poly(z, 2)"]`` -> ``["x", "z"]``.

    Names that wrap zero or several variables are returned unchanged.
    """
    out: List[str] = []
    for n in names:
        bare = bare_variable(str(n), literals)
        out.append(str(n) if bare is None else bare)
    return out


def _is_smooth(term: str) -> bool:
    node = _parse_expr(term)
    return isinstance(node, ast.Call) and _call_name(node) in SMOOTHERS


def _parse_part(rhs: str, literals: AbstractSet[str]) -> FormulaPart:
    fixed: List[str] = []
    random: List[str] = []
    smooth: List[str] = []
    slopes: List[str] = []
    for term in split_terms(rhs):
        if is_random_term(term):
            random.extend(random_groups(term, literals))
            slopes.extend(_random_slopes(term, literals))
        elif _is_smooth(term):
            smooth.extend(term_variables(term, literals))
        else:
            fixed.extend(term_variables(_strip_parens(term), literals))
    return FormulaPart(
        fixed=_unique(fixed),
        random=_unique(random),
        smooth=_unique(smooth),
        slopes=_unique(slopes),
    )


def parse_formula(text: str, literals: AbstractSet[str] = R_LITERALS) -> ParsedFormula:
    """Parse formula text into response variables and per-part variables."""
    lhs, parts = split_formula(text)
    response: Tuple[str, ...] = ()
    if lhs:
        response = term_variables(lhs, literals)
    return ParsedFormula(
        response=response,
        parts=tuple(_parse_part(p, literals) for p in parts),
    )
