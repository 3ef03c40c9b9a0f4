"""Control socket server for external app communication.

Provides a JSON command/event protocol over a Unix socket at
~/.paced-typist/.control.sock.

Commands (client → daemon):
    {"cmd": "status"}                                → engine state
    {"cmd": "type", "text": "...", "wpm": 80,
     "batch_mode": true}                             → queue text (wpm/batch_mode optional)
    {"cmd": "type_clipboard"}                        → queue the clipboard text
    {"cmd": "pause"} / {"cmd": "resume"} / {"cmd": "stop"}
    {"cmd": "set_wpm", "wpm": 90}                    → change default speed
    {"cmd": "set_batch_mode", "enabled": false}      → toggle batching
    {"cmd": "reload_config"}                         → re-read config.yaml
    {"cmd": "shutdown"}                              → stop the daemon
    {"cmd": "subscribe"}                             → keep connection open for events

Status response fields:
    daemon      bool    always True
    state       str     "idle", "running", "paused" or "stopped"
    pending     int     jobs waiting behind the current one
    current     int     id of the job being typed, or null
    wpm         int     default words per minute
    batch_mode  bool    default batching flag

Events (daemon → subscribed clients), one JSON object per line:
    {"event": "queued", "job": {...}, "preview": "..."}
    {"event": "started"}
    {"event": "progress", "job": 3, "payload": "Hello"}
    {"event": "job-done", "job": {...}, "preview": "..."}
    {"event": "job-error", "job": 3, "error": "..."}
    {"event": "paused"} / {"event": "resumed"} / {"event": "stopped"} / {"event": "idle"}
"""

import json
import logging
import os
import socket
import stat
import threading

CONTROL_SOCK_PATH = os.path.expanduser("~/.paced-typist/.control.sock")

logger = logging.getLogger(__name__)


class ControlServer:
    """JSON command/event server over Unix socket."""

    # Seconds a request may take to arrive, and a subscriber may take to drain one event
    read_timeout = 5.0
    send_timeout = 1.0

    def __init__(self, daemon, sock_path: str = None):
        self.daemon = daemon
        self.sock_path = sock_path or CONTROL_SOCK_PATH
        self._shutting_down = False
        self._event_connections = []
        self._lock = threading.Lock()
        self._server = None

    def _handle_command(self, data: dict) -> dict:
        """Handle a command and return a response."""
        cmd = data.get("cmd")
        engine = self.daemon.engine

        if cmd == "status":
            current = engine.current_job
            return {
                "daemon": True,
                "state": engine.state.value,
                "pending": len(engine.pending()),
                "current": current.id if current else None,
                "wpm": engine.config.words_per_minute,
                "batch_mode": engine.config.batch_mode,
            }

        if cmd == "type":
            metadata = {"source": data.get("source", "control")}
            if data.get("wpm") is not None:
                metadata["wpm"] = data["wpm"]
            if data.get("batch_mode") is not None:
                metadata["batch_mode"] = bool(data["batch_mode"])
            job = engine.enqueue_text(data.get("text"), data.get("delay"), metadata)
            if job is None:
                return {"error": "empty text"}
            return {"ok": True, "job": job.id}

        if cmd == "type_clipboard":
            return {"ok": True, "queued": engine.type_clipboard(data.get("delay"))}

        if cmd == "pause":
            engine.pause()
            return {"ok": True}

        if cmd == "resume":
            engine.resume()
            return {"ok": True}

        if cmd == "stop":
            engine.stop()
            return {"ok": True}

        if cmd == "set_wpm":
            return {"ok": True, "wpm": engine.set_words_per_minute(data.get("wpm"))}

        if cmd == "set_batch_mode":
            engine.set_batch_mode(data.get("enabled", True))
            return {"ok": True, "batch_mode": engine.config.batch_mode}

        if cmd == "reload_config":
            self.daemon.reload_config()
            return {"ok": True}

        if cmd == "shutdown":
            threading.Thread(target=self.daemon._shutdown, daemon=True).start()
            return {"ok": True}

        if cmd == "subscribe":
            return {"subscribed": True}

        return {"error": f"unknown command: {cmd}"}

    def add_subscriber(self, conn) -> None:
        """Register a connection for event streaming.

        Sends are bounded by ``send_timeout`` so a client that stops reading
        is dropped instead of blocking the thread that emits the event.
        """
        conn.settimeout(self.send_timeout)
        with self._lock:
            self._event_connections.append(conn)

    def emit(self, event: dict):
        """Send event to all subscribed connections, dropping stalled ones."""
        msg = json.dumps(event).encode() + b"\n"
        with self._lock:
            dead = []
            for conn in self._event_connections:
                try:
                    conn.sendall(msg)
                except socket.timeout:
                    logger.warning("Control server: subscriber not reading, dropping it")
                    dead.append(conn)
                except OSError:
                    dead.append(conn)
            for conn in dead:
                self._event_connections.remove(conn)
                _close_quietly(conn)

    def run(self):
        """Run the control socket server (blocking)."""
        os.makedirs(os.path.dirname(self.sock_path), exist_ok=True)
        if os.path.exists(self.sock_path):
            os.unlink(self.sock_path)

        server = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        server.bind(self.sock_path)
        os.chmod(self.sock_path, stat.S_IRUSR | stat.S_IWUSR)  # 0o600 - owner only
        server.listen(5)
        server.settimeout(1.0)
        self._server = server

        while not self._shutting_down:
            try:
                conn, _ = server.accept()
            except socket.timeout:
                continue
            except OSError:
                break
            conn.settimeout(self.read_timeout)
            threading.Thread(
                target=self._handle_connection, args=(conn,), daemon=True
            ).start()

        _close_quietly(server)
        if os.path.exists(self.sock_path):
            os.unlink(self.sock_path)

    @staticmethod
    def _read_request(conn) -> dict | None:
        """Read bytes until they parse as one JSON object. None if the client hung up."""
        data = b""
        while True:
            chunk = conn.recv(4096)
            if not chunk:
                break
            data += chunk
            try:
                return json.loads(data.decode())
            except json.JSONDecodeError:
                continue
        if not data:
            return None
        return json.loads(data.decode())

    def _handle_connection(self, conn):
        """Answer one request. Subscribers stay open for the event stream."""
        try:
            request = self._read_request(conn)
            if request is None:
                _close_quietly(conn)
                return

            response = self._handle_command(request)
            if request.get("cmd") == "subscribe":
                conn.sendall(json.dumps(response).encode() + b"\n")
                self.add_subscriber(conn)
                return

            conn.sendall(json.dumps(response).encode())
            _close_quietly(conn)
        except (json.JSONDecodeError, UnicodeDecodeError, AttributeError) as e:
            logger.warning("Control server: malformed request: %s", e)
            _close_quietly(conn)
        except OSError:
            # Client disconnected or stopped talking
            _close_quietly(conn)

    def shutdown(self):
        """Stop the server and close all event connections."""
        self._shutting_down = True
        if self._server:
            _close_quietly(self._server)
        with self._lock:
            for conn in self._event_connections:
                _close_quietly(conn)
            self._event_connections.clear()


def _close_quietly(sock) -> None:
    try:
        sock.close()
    except OSError:
        pass  # Already closed


def send_command(data: dict, sock_path: str = None, timeout: float = 5.0) -> dict:
    """Send one command to a running daemon and return its JSON reply."""
    client = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    client.settimeout(timeout)
    try:
        client.connect(sock_path or CONTROL_SOCK_PATH)
        client.sendall(json.dumps(data).encode())
        reply = b""
        while True:
            chunk = client.recv(4096)
            if not chunk:
                break
            reply += chunk
        return json.loads(reply.decode())
    finally:
        client.close()
