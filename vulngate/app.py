import logging
from typing import Optional, Sequence

from rich.markup import escape
from textual import work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal, Vertical, VerticalScroll
from textual.screen import ModalScreen
from textual.widgets import Button, Footer, Header, Label, LoadingIndicator, Markdown, Tree

from vulngate.__version__ import __version__
from vulngate.core.errors import PolicyViolation
from vulngate.core.model import Coordinate, DependencyNode, PolicyConfiguration, VulnerabilityRecord
from vulngate.core.rule import BanVulnerableDependencies, ProjectContext, RuleOutcome


def build_markdown_report(coordinate: Coordinate, records: Sequence[VulnerabilityRecord]) -> str:
    md_output = []

    for record in records:
        md_output.append(f"# (X) {record.id}\n")
        md_output.append(f"**{record.title or 'No title available.'}**\n")
        md_output.append(f"CVSS score: `{record.cvss_score}`\n")

        if record.reference:
            md_output.append("### Links\n")
            md_output.append(f"- **Reference**: [{record.reference}]({record.reference})")

        md_output.append("\n---\n")

    if not md_output:
        return f"No actionable vulnerabilities for {coordinate}."

    return "\n".join(md_output)


def node_label(node: DependencyNode, records: Sequence[VulnerabilityRecord], excluded: bool) -> str:
    safe_name = escape(f"{node.coordinate.group}:{node.coordinate.name}")
    safe_ver = escape(node.coordinate.version)
    scope = f" [dim]({escape(node.scope)})[/]" if node.scope else ""

    child_count = len(node.children)
    count_suffix = f" [dim]↳[/] {child_count}" if child_count > 0 else ""

    if excluded:
        return f"[yellow](~) {safe_name}[/] [dim]{safe_ver}[/]{scope} [yellow](excluded)[/]{count_suffix}"
    if records:
        top = max(r.cvss_score for r in records)
        return f"[bold red](!) {safe_name}[/] [dim]{safe_ver}[/]{scope} [red]({len(records)} vulns, max {top})[/]{count_suffix}"
    return f"[green](•) {safe_name} [dim]{safe_ver}[/]{scope}{count_suffix}"


class VulnerabilityScreen(ModalScreen):
    """Modal with the actionable vulnerabilities of one component."""

    DEFAULT_CSS = """
    VulnerabilityScreen {
        align: center middle;
        background: rgba(0, 0, 0, 0.8);
    }
    #dialog {
        padding: 0 1;
        width: 85%;
        height: 85%;
        border: heavy $error;
        background: $surface;
        layout: vertical;
    }
    #title {
        text-align: center;
        text-style: bold;
        background: $error;
        color: white;
        width: 100%;
        padding: 1;
    }
    #content-scroll {
        height: 1fr;
        margin: 1 0;
        overflow-y: auto;
    }
    #close-btn {
        width: 100%;
        dock: bottom;
    }
    """

    def __init__(self, coordinate: Coordinate, records: Sequence[VulnerabilityRecord]) -> None:
        super().__init__()
        self.coordinate = coordinate
        self.records = records

    def compose(self) -> ComposeResult:
        yield Vertical(
            Label(f"[!] {escape(str(self.coordinate))}", id="title"),
            VerticalScroll(
                Markdown(build_markdown_report(self.coordinate, self.records)),
                id="content-scroll"
            ),
            Button("Close (Esc)", variant="error", id="close-btn"),
            id="dialog",
        )

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss()

    def key_escape(self) -> None:
        self.dismiss()


class ReportApp(App):
    TITLE = "vulngate"
    SUB_TITLE = f"v{__version__}"

    DEFAULT_CSS = """
    Screen { layout: vertical; }

    #info-bar {
        height: 3;
        dock: top;
        background: $surface;
        border-bottom: solid $primary;
        align: left middle;
        padding: 0 1;
    }

    .info-label {
        width: auto;
        height: 1;
        padding: 0 2;
        color: $text;
    }

    #tree-container {
        height: 1fr;
        border: none;
        margin: 0 1;
    }
    Tree { padding: 1; background: $surface; }

    #loading-container { height: 100%; align: center middle; }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("j", "cursor_down", "Down", show=False),
        Binding("k", "cursor_up", "Up", show=False),
        Binding("l", "expand_node", "Expand"),
        Binding("h", "collapse_node", "Collapse"),
        Binding("v", "toggle_filter", "Vuln Only"),
    ]

    show_only_vulnerable: bool = False

    def __init__(self, config: PolicyConfiguration, builder, project: ProjectContext) -> None:
        super().__init__()
        self.config = config
        self.builder = builder
        self.project = project
        self.outcome: Optional[RuleOutcome] = None

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)

        with Horizontal(id="info-bar"):
            yield Label(f"[b]Source:[/b] [cyan]{self.builder.name}[/]", id="lbl-source", classes="info-label")
            yield Label("[b]Components:[/b] [blue]0[/]", id="lbl-total", classes="info-label")
            yield Label("[b]Vuln:[/b] [red]0[/]", id="lbl-vuln", classes="info-label")
            yield Label("[b]Verdict:[/b] ...", id="lbl-verdict", classes="info-label")

        with Container(id="main-area"):
            with Container(id="loading-container"):
                yield LoadingIndicator()
                yield Label("Initializing vulngate...", id="status-label")

            with Container(id="tree-container"):
                yield Tree("Root", id="dep-tree")

        yield Footer()

    def on_mount(self) -> None:
        self.query_one("#tree-container").display = False
        self.run_rule()

    # --- ACTIONS ---

    def action_cursor_down(self) -> None:
        self.query_one("#dep-tree").action_cursor_down()

    def action_cursor_up(self) -> None:
        self.query_one("#dep-tree").action_cursor_up()

    def action_expand_node(self) -> None:
        tree = self.query_one("#dep-tree")
        if tree.cursor_node:
            tree.cursor_node.expand()

    def action_collapse_node(self) -> None:
        tree = self.query_one("#dep-tree")
        node = tree.cursor_node
        if node:
            if node.is_expanded:
                node.collapse()
            elif node.parent:
                tree.select_node(node.parent)
                node.parent.collapse()

    def on_tree_node_selected(self, event: Tree.NodeSelected) -> None:
        node = event.node.data
        if not isinstance(node, DependencyNode):
            return
        records = self._findings().get(node.coordinate, ())
        if records:
            self.push_screen(VulnerabilityScreen(node.coordinate, records))
        else:
            self.notify("No actionable vulnerabilities.", severity="information")

    def action_toggle_filter(self) -> None:
        self.show_only_vulnerable = not self.show_only_vulnerable
        msg = "Showing vulnerable components only." if self.show_only_vulnerable else "Showing all components."
        self.notify(msg, severity="warning" if self.show_only_vulnerable else "information")

        if self.outcome and self.outcome.root:
            self.render_tree(self.outcome.root)

    # --- LOGIC ---

    def _findings(self):
        if self.outcome and self.outcome.verdict:
            return self.outcome.verdict.findings
        return {}

    def _has_vulnerable_descendant(self, node: DependencyNode) -> bool:
        if node.coordinate in self._findings():
            return True
        return any(self._has_vulnerable_descendant(child) for child in node.children)

    def update_status(self, msg: str) -> None:
        self.query_one("#status-label", Label).update(msg)

    def show_error(self, message: str) -> None:
        self.update_status(f"[bold red]Fatal Error:[/]\n{escape(message)}")
        self.query_one(LoadingIndicator).display = False

    def show_outcome(self, outcome: RuleOutcome) -> None:
        self.outcome = outcome
        vulnerable = len(self._findings())

        if outcome.skipped:
            verdict = f"[yellow]SKIPPED ({outcome.skip_reason.value})[/]"
        elif vulnerable:
            verdict = "[bold red]FAIL[/]"
        else:
            verdict = "[green]PASS[/]"

        self.query_one("#lbl-total", Label).update(f"[b]Components:[/b] [blue]{len(outcome.components)}[/]")
        self.query_one("#lbl-vuln", Label).update(f"[b]Vuln:[/b] [red]{vulnerable}[/]")
        self.query_one("#lbl-verdict", Label).update(f"[b]Verdict:[/b] {verdict}")

        if outcome.root is None:
            self.update_status(f"Skipped: {outcome.skip_reason.value}")
            self.query_one(LoadingIndicator).display = False
            return

        self.render_tree(outcome.root)

    @work(thread=True, exclusive=True)
    def run_rule(self) -> None:
        self.call_from_thread(self.update_status, "Checking dependencies...")
        rule = BanVulnerableDependencies(self.config, self.builder)
        try:
            outcome = rule.execute(self.project)
        except PolicyViolation as violation:
            logging.info("Policy violation:\n" + violation.explanation)
            outcome = violation.outcome
        except Exception as e:
            logging.exception("Fatal error in worker:")
            self.call_from_thread(self.show_error, str(e))
            return

        self.call_from_thread(self.show_outcome, outcome)

    def render_tree(self, root_node: DependencyNode) -> None:
        tree = self.query_one("#dep-tree")
        tree.clear()
        tree.root.data = root_node
        tree.root.label = f"📂 {escape(str(root_node.coordinate))}"
        tree.root.expand()
        findings = self._findings()
        excluded = self.config.exclude_coordinates

        def add_nodes(tree_node, data_node):
            for child in data_node.children:
                if self.show_only_vulnerable and not self._has_vulnerable_descendant(child):
                    continue

                label = node_label(child, findings.get(child.coordinate, ()), child.coordinate in excluded)
                new_node = tree_node.add(label, expand=self.show_only_vulnerable, data=child)
                add_nodes(new_node, child)

        add_nodes(tree.root, root_node)
        self.query_one("#loading-container").display = False
        self.query_one("#tree-container").display = True
        tree.focus()
