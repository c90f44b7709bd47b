#!/usr/bin/env python3
"""Interactive chat CLI for the DeFi chat service."""

import json
import sys

import httpx
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table


class ChatCLI:
    """Interactive chat interface for the DeFi chat service."""

    def __init__(self, base_url: str = "http://localhost:8000", wallet_address: str | None = None):
        """Initialize chat CLI."""
        self.base_url = base_url
        self.wallet_address = wallet_address
        self.session_id: str | None = None
        self.thread_id: str | None = None
        self.console = Console()
        self.client = httpx.Client(timeout=60.0)

    def start(self) -> None:
        """Start the interactive chat session."""
        self.console.print(
            Panel.fit(
                "[bold blue]💬 DefiChat - Interactive Chat[/bold blue]\n"
                "Type messages or slash commands (/help, /balance, /transfer ...).\n"
                "Local commands: :new, :threads, :switch <id>, :clear, :delete, :history, :quit",
                border_style="blue",
            )
        )

        if not self._test_connection():
            self.console.print(f"[red]❌ Cannot connect to the service at {self.base_url}.[/red]")
            return

        wallet = self.wallet_address or "not connected"
        self.console.print(f"[green]✅ Connected[/green] [dim](wallet: {wallet})[/dim]\n")

        try:
            while True:
                user_input = Prompt.ask("\n[bold cyan]You[/bold cyan]").strip()

                if user_input.lower() in [":quit", ":exit", "quit", "exit"]:
                    break
                elif user_input.startswith(":"):
                    self._handle_local_command(user_input)
                    continue
                elif user_input == "":
                    continue

                response = self._send_message(user_input)
                if response:
                    self._display_response(response)

        except KeyboardInterrupt:
            pass
        finally:
            self.console.print("\n[yellow]👋 Goodbye![/yellow]")
            self.client.close()

    def _test_connection(self) -> bool:
        """Test connection to the service."""
        try:
            response = self.client.get(f"{self.base_url}/health")
            return response.status_code == 200
        except httpx.HTTPError:
            return False

    def _send_message(self, message: str) -> dict | None:
        """Send a message to the conversation endpoint."""
        payload = {"message": message}
        if self.session_id:
            payload["session_id"] = self.session_id
        if self.thread_id:
            payload["thread_id"] = self.thread_id
        if self.wallet_address:
            payload["wallet_address"] = self.wallet_address

        data = self._request("POST", "/conversation", json=payload, status="💭 Thinking...")
        if data:
            self.session_id = data.get("session_id")
            self.thread_id = data.get("thread_id")
        return data

    def _request(self, method: str, path: str, status: str | None = None, **kwargs) -> dict | None:
        try:
            if status:
                with self.console.status(f"[dim]{status}[/dim]"):
                    response = self.client.request(method, f"{self.base_url}{path}", **kwargs)
            else:
                response = self.client.request(method, f"{self.base_url}{path}", **kwargs)
        except httpx.HTTPError as e:
            self.console.print(f"[red]❌ Connection error: {e}[/red]")
            return None

        if response.status_code != 200:
            self.console.print(f"[red]❌ API Error: {response.status_code} - {response.text}[/red]")
            return None
        return response.json()

    def _display_response(self, response: dict) -> None:
        """Display the assistant reply and any tool results."""
        for result in response.get("tool_results", []):
            if result.get("error"):
                body = f"[red]{result['error_type']}: {result['error']}[/red]"
            else:
                body = json.dumps(result.get("result"), indent=2)
            title = f"[magenta]🔧 {result['tool_name']}[/magenta]"
            self.console.print(Panel(body, title=title, border_style="magenta"))

        style = "red" if response.get("error") else "green"
        title = "📌 Direct" if response.get("is_direct") else "🤖 Assistant"
        self.console.print(
            Panel(
                Markdown(response.get("content", "No response")),
                title=f"[bold {style}]{title}[/bold {style}]",
                subtitle=f"[dim]{response.get('message_kind')} / {response.get('analysis_kind')}[/dim]",
                border_style=style,
                padding=(1, 2),
            )
        )

    def _handle_local_command(self, line: str) -> None:
        command, _, argument = line.partition(" ")
        argument = argument.strip()

        if command == ":new":
            data = self._request("POST", "/threads", json={"session_id": self.session_id, "title": argument or None})
            if data:
                self.session_id = data["session_id"]
                self.thread_id = data["thread"]["id"]
                self.console.print(f"[yellow]🆕 Started thread {data['thread']['title']}[/yellow]")
        elif not self.session_id:
            self.console.print("[yellow]No session yet - send a message first.[/yellow]")
        elif command == ":threads":
            self._show_threads()
        elif command == ":switch" and argument:
            data = self._request("POST", f"/threads/{argument}/switch", json={"session_id": self.session_id})
            if data:
                self.thread_id = data["thread"]["id"]
                self.console.print(f"[yellow]🔀 Switched to {data['thread']['title']}[/yellow]")
        elif command == ":clear" and self.thread_id:
            if self._request("POST", f"/threads/{self.thread_id}/clear", json={"session_id": self.session_id}):
                self.console.print("[yellow]🧹 Thread cleared[/yellow]")
        elif command == ":delete" and self.thread_id:
            data = self._request("DELETE", f"/threads/{self.thread_id}", params={"session_id": self.session_id})
            if data:
                self.thread_id = data["active_thread_id"]
                self.console.print(f"[yellow]🗑️ Deleted, active thread now {self.thread_id}[/yellow]")
        elif command == ":history" and self.thread_id:
            data = self._request("GET", f"/threads/{self.thread_id}/messages", params={"session_id": self.session_id})
            for message in (data or {}).get("messages", []):
                self.console.print(f"[bold]{message['role']}[/bold]: {message['content']}")
        else:
            self.console.print(f"[yellow]Unknown or incomplete command: {line}[/yellow]")

    def _show_threads(self) -> None:
        data = self._request("GET", "/threads", params={"session_id": self.session_id})
        if not data:
            return

        table = Table(title="Threads")
        table.add_column("Active")
        table.add_column("ID")
        table.add_column("Title")
        table.add_column("Messages", justify="right")
        for thread in data["threads"]:
            marker = "•" if thread["id"] == data["active_thread_id"] else ""
            table.add_row(marker, thread["id"], thread["title"], str(thread["message_count"]))
        self.console.print(table)


def main():
    """Main entry point for the chat CLI."""
    base_url = sys.argv[1] if len(sys.argv) > 1 else "http://localhost:8000"
    wallet_address = sys.argv[2] if len(sys.argv) > 2 else None

    chat = ChatCLI(base_url, wallet_address)
    chat.start()


if __name__ == "__main__":
    main()
