import sys
import threading

UART_BASE = 0x10000000
UART_SIZE = 0x100

# Register offsets
RBR = 0  # read, DLAB=0
THR = 0  # write, DLAB=0
IER = 1
IIR = 2  # read
FCR = 2  # write
LCR = 3
MCR = 4
LSR = 5
MSR = 6
SCR = 7

IER_RX = 0x1
IER_THRE = 0x2

IIR_NO_INT = 0x1
IIR_THR_EMPTY = 0x2
IIR_RD_AVAILABLE = 0x4

LCR_DLAB = 0x80

LSR_DR = 0x01
LSR_THRE = 0x20
LSR_TEMT = 0x40


class Uart16550:
    """Subset of a 16550 UART.

    Transmit is immediate: a THR write goes straight to ``output``. Receive
    is fed from a byte buffer that a reader thread (or ``queue_input``)
    appends to; ``tick`` moves one byte at a time into RBR.
    """

    def __init__(self, output=None):
        self.output = output if output is not None else sys.stdout
        self.rbr = 0
        self.ier = 0
        self.lcr = 0
        self.mcr = 0
        self.lsr = LSR_THRE | LSR_TEMT
        self.scr = 0
        self.dll = 0
        self.dlm = 0
        self.thre_pending = False
        self._buffer = bytearray()
        self._lock = threading.Lock()
        self._reader = None

    def queue_input(self, text):
        if isinstance(text, str):
            text = text.encode("utf-8")
        with self._lock:
            self._buffer += text

    def start_input_thread(self, stream=None):
        if stream is None:
            stream = sys.stdin.buffer
        self._reader = threading.Thread(target=self._read_loop, args=(stream,), daemon=True)
        self._reader.start()
        return self._reader

    def _read_loop(self, stream):
        while True:
            data = stream.read(1)
            if not data:
                return
            self.queue_input(data)

    def pending_input(self):
        with self._lock:
            return len(self._buffer)

    def tick(self):
        if self.lsr & LSR_DR:
            return
        with self._lock:
            if not self._buffer:
                return
            byte = self._buffer[0]
            del self._buffer[0]
        self.rbr = byte
        self.lsr |= LSR_DR

    def interrupting(self):
        return self._iir() != IIR_NO_INT

    def _iir(self):
        if self.ier & IER_RX and self.lsr & LSR_DR:
            return IIR_RD_AVAILABLE
        if self.ier & IER_THRE and self.thre_pending:
            return IIR_THR_EMPTY
        return IIR_NO_INT

    def _dlab(self):
        return bool(self.lcr & LCR_DLAB)

    def read(self, offset, size):
        value = 0
        for i in range(size):
            value |= self._read_byte(offset + i) << (8 * i)
        return value

    def write(self, offset, value, size):
        for i in range(size):
            self._write_byte(offset + i, (value >> (8 * i)) & 0xff)

    def _read_byte(self, offset):
        if offset == RBR:
            if self._dlab():
                return self.dll
            value = self.rbr
            self.rbr = 0
            self.lsr &= ~LSR_DR
            return value
        if offset == IER:
            return self.dlm if self._dlab() else self.ier
        if offset == IIR:
            iir = self._iir()
            if iir == IIR_THR_EMPTY:
                # reading IIR acknowledges the THR-empty interrupt
                self.thre_pending = False
            return iir
        if offset == LCR:
            return self.lcr
        if offset == MCR:
            return self.mcr
        if offset == LSR:
            return self.lsr
        if offset == SCR:
            return self.scr
        return 0

    def _write_byte(self, offset, value):
        if offset == THR:
            if self._dlab():
                self.dll = value
                return
            self.output.write(chr(value))
            self.output.flush()
            self.thre_pending = True
        elif offset == IER:
            if self._dlab():
                self.dlm = value
            else:
                self.ier = value & 0x0f
                if self.ier & IER_THRE:
                    self.thre_pending = True
        elif offset == LCR:
            self.lcr = value
        elif offset == MCR:
            self.mcr = value
        elif offset == SCR:
            self.scr = value
