"""Rich rendering of a lineage graph.

Output is grouped per declaration: its name, the construct that declared it,
where it lives, and every site that references it together with how many
scope hops the binding travels to reach that site.
"""
import json
from typing import List, Optional

from rich.console import Console
from rich.table import Table
from rich.tree import Tree
from rich.markup import escape

from ..analyzer.lineage_graph import LineageGraph
from ..analyzer.models import Declaration, DiagnosticCode, ResolutionPath


class LineageReport:
    """Render one LineageGraph for humans or as JSON."""

    def __init__(self, graph: LineageGraph, title: str = "Data Lineage"):
        self.graph = graph
        self.title = title

    def declarations(self, variable: Optional[str] = None) -> List[Declaration]:
        """Declarations to show, in source order, optionally filtered by name."""
        decls = self.graph.declarations()
        if variable is not None:
            decls = [d for d in decls if d.name == variable]
        return sorted(decls, key=lambda d: d.span.start_byte)

    def build_tree(self, variable: Optional[str] = None) -> Tree:
        graph = self.graph
        tree = Tree(f"[bold]{escape(self.title)}[/bold]")

        for declaration in self.declarations(variable):
            scope_name = graph.qualified_name(declaration.scope_id)
            branch = tree.add(
                f"[cyan]{escape(declaration.name)}[/cyan] "
                f"[dim]({escape(declaration.construct or declaration.kind.value)})[/dim] "
                f"declared at {declaration.span} in [green]{escape(scope_name)}[/green]"
            )
            edges = graph.edges_of(declaration)
            if not edges:
                branch.add("[dim]No references found[/dim]")
                continue
            for edge in edges:
                reference = graph.reference(edge.reference_id)
                access = "write" if reference.write else "read"
                via = " via this" if edge.path == ResolutionPath.MEMBER else ""
                branch.add(
                    f"{reference.span} in {escape(graph.qualified_name(reference.scope_id))} "
                    f"[dim]({access}, depth {edge.hops}{via})[/dim]"
                )
        return tree

    def build_diagnostics_table(self, show_unresolved: bool = False) -> Optional[Table]:
        diagnostics = [
            d for d in self.graph.diagnostics
            if show_unresolved or d.code != DiagnosticCode.UNRESOLVED_REFERENCE
        ]
        if not diagnostics:
            return None

        table = Table(title="Diagnostics", show_header=True, header_style="bold yellow")
        table.add_column("Kind", style="yellow", no_wrap=True)
        table.add_column("Name", style="cyan", no_wrap=True)
        table.add_column("Site", justify="right")
        table.add_column("Message")
        for diagnostic in sorted(diagnostics, key=lambda d: d.span.start_byte):
            table.add_row(diagnostic.code.value, escape(diagnostic.name), str(diagnostic.span),
                          escape(diagnostic.message))
        return table

    def render(self, console: Console, variable: Optional[str] = None, show_unresolved: bool = False):
        console.print(self.build_tree(variable))
        table = self.build_diagnostics_table(show_unresolved)
        if table is not None:
            console.print(table)

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.graph.to_dict(), indent=indent)
