"""
Shared occurrence traversal.

Return annotations and method bodies are both plain ``ast`` trees. The
Transition Rewriter and the Body Patcher each need to find every place the
tracked type shows up, however deeply it is wrapped, and rewrite it. They
share this walker and differ only in what counts as an occurrence and how it
is rewritten.
"""

import ast
from typing import List, Sequence, Tuple


class OccurrenceTransformer(ast.NodeTransformer):
    """
    Rewrite every occurrence of a tracked type in an expression tree.

    Subclasses implement ``matches`` and ``rewrite``. ``rewrite`` receives
    the matched node and is responsible for any recursion into it. Nested
    scopes (functions, lambdas, classes) are left untouched.
    """

    def __init__(self, type_name: str):
        self.type_name = type_name
        self.occurrences = 0

    def matches(self, node: ast.AST) -> bool:
        raise NotImplementedError

    def rewrite(self, node: ast.AST) -> ast.AST:
        raise NotImplementedError

    def names_type(self, node: ast.AST) -> bool:
        """True for ``Type`` and ``anything.Type``."""
        if isinstance(node, ast.Name):
            return node.id == self.type_name
        if isinstance(node, ast.Attribute):
            return node.attr == self.type_name
        return False

    def visit(self, node: ast.AST) -> ast.AST:
        if self.matches(node):
            self.occurrences += 1
            return self.rewrite(node)
        return super().visit(node)

    def visit_FunctionDef(self, node: ast.FunctionDef) -> ast.AST:
        return node

    def visit_AsyncFunctionDef(self, node: ast.AsyncFunctionDef) -> ast.AST:
        return node

    def visit_ClassDef(self, node: ast.ClassDef) -> ast.AST:
        return node

    def visit_Lambda(self, node: ast.Lambda) -> ast.AST:
        return node

    def transform(self, node: ast.AST) -> ast.AST:
        """Transform one tree; the result has locations filled in."""
        result = self.visit(node)
        return ast.fix_missing_locations(result)

    def transform_body(self, body: Sequence[ast.stmt]) -> Tuple[List[ast.stmt], int]:
        """Transform each statement of a body; returns (new body, occurrences found)."""
        before = self.occurrences
        new_body: List[ast.stmt] = []
        for statement in body:
            result = self.visit(statement)
            if result is None:
                continue
            if isinstance(result, list):
                new_body.extend(result)
            else:
                new_body.append(result)
        for statement in new_body:
            ast.fix_missing_locations(statement)
        return new_body, self.occurrences - before
