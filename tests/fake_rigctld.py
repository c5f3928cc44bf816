#!/usr/bin/env python3
"""
Stand-in for Hamlib's rigctld driving the Dummy rig, for tests.

Answers the extended response protocol (';' separator) for get/set_freq,
get/set_mode and get/set_powerstat with the Dummy rig's power-on state
(145 MHz, FM, 15 kHz). Usable two ways:

- in-process: FakeRigctld().start() serves on an ephemeral port;
- as an executable daemon: main() accepts rigctld's switches (-T -t -m -r
  -s -c -v --version), so the supervisor can spawn it like the real thing.

Knobs for the executable, read from the environment it inherits:
  FAKE_RIGCTLD_BIND_DELAY      seconds to sleep before listening
  FAKE_RIGCTLD_EXIT_CODE       exit with this code instead of serving
  FAKE_RIGCTLD_IGNORE_SIGTERM  ignore SIGTERM so only SIGKILL stops it

A non-Dummy model behaves like rigctld with an unreachable device: it
accepts connections and never answers.
"""
import argparse
import os
import signal
import socket
import socketserver
import sys
import threading
import time

VERSION = "rigctld(fake) Hamlib 4.5.5"
DUMMY_MODEL = 1

MODES = (
    "USB", "LSB", "CW", "CWR", "RTTY", "RTTYR", "AM", "FM", "WFM", "AMS",
    "PKTLSB", "PKTUSB", "PKTFM", "ECSSUSB", "ECSSLSB", "FAX", "SAM", "SAL", "SAH", "DSB",
)

# What the Dummy rig reports after 'set_mode <mode> 0'
NORMAL_PASSBAND = {"CW": 500, "CWR": 500, "RTTY": 2400, "RTTYR": 2400, "AM": 8000, "FM": 15000, "WFM": 230000}


class DummyRig:
    def __init__(self):
        self.freq = 145000000.0
        self.mode = "FM"
        self.passband = 15000
        self.powerstat = 1
        self.lock = threading.Lock()

    def execute(self, name, args):
        """Return (rprt_code, [field records])."""
        with self.lock:
            if name == "get_freq":
                return 0, [f"Frequency: {int(self.freq)}"]
            if name == "set_freq":
                try:
                    (value,) = args
                    self.freq = float(value)
                except ValueError:
                    return -1, []
                return 0, []
            if name == "get_mode":
                return 0, [f"Mode: {self.mode}", f"Passband: {self.passband}"]
            if name == "set_mode":
                if len(args) != 2 or args[0] not in MODES or not args[1].isdigit():
                    return -1, []
                self.mode = args[0]
                self.passband = int(args[1]) or NORMAL_PASSBAND.get(self.mode, 2400)
                return 0, []
            if name == "get_powerstat":
                return 0, [f"Power Status: {self.powerstat}"]
            if name == "set_powerstat":
                if args not in (["0"], ["1"], ["2"]):
                    return -1, []
                self.powerstat = int(args[0])
                return 0, []
        return -4, []


class RigctldHandler(socketserver.StreamRequestHandler):
    """One client connection; one response line per request line."""

    def handle(self):
        while True:
            line = self.rfile.readline()
            if not line:
                return
            text = line.decode(errors="replace").strip()
            if not text:
                continue
            reply = self.server.respond(text)
            if reply is None:
                continue
            self.wfile.write(reply.encode())


class FakeRigctld(socketserver.ThreadingTCPServer):
    allow_reuse_address = True
    daemon_threads = True

    def __init__(self, host="127.0.0.1", port=0):
        super().__init__((host, port), RigctldHandler)
        self.rig = DummyRig()
        self.silent = False
        self.overrides = {}  # command name -> raw reply text (without newline)
        self.requests = []
        self._thread = None

    @property
    def host(self):
        return self.server_address[0]

    @property
    def port(self):
        return self.server_address[1]

    def start(self):
        self._thread = threading.Thread(target=self.serve_forever, name="fake-rigctld", daemon=True)
        self._thread.start()
        return self

    def stop(self):
        self.shutdown()
        self.server_close()
        if self._thread:
            self._thread.join(timeout=2.0)

    def respond(self, text):
        self.requests.append(text)
        if self.silent:
            return None
        if not text.startswith(";"):
            return "RPRT -1\n"

        body = text[1:]
        if body.startswith("\\"):
            body = body[1:]
        name, *args = body.split()

        if name in self.overrides:
            return self.overrides[name] + "\n"

        code, fields = self.rig.execute(name, args)
        echo = (" " + " ".join(args)) if args else ""
        return ";".join([f"{name}:{echo}", *fields, f"RPRT {code}"]) + "\n"


# ---------------------------------------------------------------------
# Test helpers
# ---------------------------------------------------------------------

def find_free_port(host="127.0.0.1"):
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind((host, 0))
        return s.getsockname()[1]


def port_accepts(port, host="127.0.0.1"):
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.settimeout(0.5)
        return s.connect_ex((host, port)) == 0


def wait_for(predicate, timeout=5.0, interval=0.05):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


# ---------------------------------------------------------------------
# Executable daemon
# ---------------------------------------------------------------------

def main(argv=None):
    parser = argparse.ArgumentParser(prog="rigctld")
    parser.add_argument("-T", "--listen-addr", default="127.0.0.1")
    parser.add_argument("-t", "--port", type=int, default=4532)
    parser.add_argument("-m", "--model", type=int, default=DUMMY_MODEL)
    parser.add_argument("-r", "--rig-file")
    parser.add_argument("-s", "--serial-speed", type=int)
    parser.add_argument("-c", "--civaddr")
    parser.add_argument("-v", "--verbose", action="count", default=0)
    parser.add_argument("--version", action="version", version=VERSION)
    args = parser.parse_args(argv)

    if os.environ.get("FAKE_RIGCTLD_EXIT_CODE"):
        return int(os.environ["FAKE_RIGCTLD_EXIT_CODE"])
    if os.environ.get("FAKE_RIGCTLD_IGNORE_SIGTERM") == "1":
        signal.signal(signal.SIGTERM, signal.SIG_IGN)
    if os.environ.get("FAKE_RIGCTLD_BIND_DELAY"):
        time.sleep(float(os.environ["FAKE_RIGCTLD_BIND_DELAY"]))

    try:
        server = FakeRigctld(args.listen_addr, args.port)
    except OSError as e:
        print(f"rigctld: bind failed on {args.listen_addr}:{args.port}: {e}", file=sys.stderr)
        return 1

    server.silent = args.model != DUMMY_MODEL
    try:
        server.serve_forever()
    finally:
        server.server_close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
