'''Decoder for the SPI conversation between a host processor and a CC1101 radio.

Feeds trace text through spi_trace, classifies each chip-select framed
transaction, keeps a shadow copy of the radio's configuration registers and
reassembles the packets written to and read from the FIFOs.  Everything it finds
is returned as event tuples; cc1101_log turns them into text.
'''

from collections import namedtuple

import cc1101_regs as regs
import spi_trace


MAX_PACKET = 100
SKIPPED_LIMIT = 256  # characters of skipped text kept for a resync report


RegisterAccess = namedtuple('RegisterAccess', 'elapsed op regnum value old')
BlockTransfer = namedtuple('BlockTransfer', 'elapsed op regnum data')
BurstSummary = namedtuple('BurstSummary', 'elapsed written changed')
CommandStrobe = namedtuple('CommandStrobe', 'elapsed regnum')
ReceiveEnable = namedtuple('ReceiveEnable', 'elapsed channel sync1 sync0')
Diagnostic = namedtuple('Diagnostic', 'message regnum offset context skipped resumed more', defaults=(0,))
DataLoss = namedtuple('DataLoss', 'offset')
BufferFlush = namedtuple('BufferFlush', 'offset events')
Banner = namedtuple('Banner', 'offset')


class PacketRecord(namedtuple('PacketRecord', 'elapsed xmit data channel sync1 sync0')):
  '''A completed FIFO transfer.  An empty one marks a chip reset.'''
  
  __slots__ = ()
  
  @property
  def length(self):
    return len(self.data)


def _diagnostic(message, regnum=None, offset=None):
  return Diagnostic(message, regnum, offset, None, None, None)


class FramingError(Exception):
  '''Chip select framing that does not match the transaction in progress.  Recoverable.'''
  
  def __init__(self, message, token, regnum=None):
    super().__init__(message)
    self.message = message
    self.token = token
    self.regnum = regnum


class ProtocolViolation(Exception):
  '''Something the decoder cannot continue past without making up state.'''
  
  def __init__(self, message, value, offset, before, after):
    super().__init__(message, value)
    self.message = message
    self.value = value
    self.offset = offset
    self.before = before
    self.after = after
  
  def __str__(self):
    return '%s, %02X' % (self.message, self.value)


class ConfigRegisters:
  '''Last known register values, plus a staging area for burst writes.'''
  
  def __init__(self):
    self.current = bytearray(regs.NUM_REGISTERS)
    self.staging = bytearray(regs.NUM_REGISTERS)
  
  def write(self, regnum, value):
    old = self.current[regnum]
    self.current[regnum] = value
    return old
  
  def stage(self, regnum, value):
    self.staging[regnum] = value
  
  def commit(self, start, end):
    '''Copies staged registers in [start, end) that differ from current.  Returns (regnum, old, new) for each.'''
    changed = []
    for regnum in range(start, end):
      old, new = self.current[regnum], self.staging[regnum]
      if old != new:
        self.current[regnum] = new
        changed.append((regnum, old, new))
    return changed


class Packet:
  
  def __init__(self):
    self.elapsed = 0
    self.xmit = False
    self.data = bytearray()
    self.dropped = 0
  
  @property
  def length(self):
    return len(self.data)
  
  def append(self, byte):
    if len(self.data) < MAX_PACKET:
      self.data.append(byte)
    else:
      self.dropped += 1
  
  def discard(self):
    self.data = bytearray()
    self.dropped = 0
  
  def reset(self):
    self.discard()
    self.elapsed = 0


_SINGLE = 'single'
_REGISTER_BURST = 'register burst'
_TABLE_BURST = 'table burst'
_FIFO_BURST = 'fifo burst'


class _Transaction:
  
  def __init__(self, kind, regnum, is_read, elapsed=0):
    self.kind = kind
    self.start = self.regnum = regnum
    self.is_read = is_read
    self.elapsed = elapsed
    self.data = bytearray()
  
  @property
  def op(self):
    return 'read' if self.is_read else 'write'


class Cc1101Decoder:
  '''Stateful decoder for one continuous trace.
  
  decode() and finish() return generators of events; nothing is decoded until
  they are iterated.  Recoverable problems become Diagnostic events and the
  decoder resynchronizes at the next chip select.  ProtocolViolation is raised
  when the decoder's own state can no longer be trusted.
  '''
  
  def __init__(self, receive_enable=False, legacy=False):
    self.regs = ConfigRegisters()
    self.packet = Packet()
    self.chip_selected = False
    self._receive_enable = receive_enable
    self._tokens = spi_trace.SpiTraceTokenizer(legacy)
    self._cmd_time = 0  # microseconds since the last timed log line
    self._trans = None
    self._resync = None
    self._skipped = ''
    self._skipped_more = 0
  
  @property
  def resyncing(self):
    return self._resync is not None
  
  def decode(self, text):
    self._tokens.feed(text)
    return self._run()
  
  def finish(self):
    self._tokens.close()
    return self._run()
  
  def _run(self):
    tokens = self._tokens
    while True:
      if self._resync is not None:
        skipped, found = tokens.skip_to_select()
        self._keep_skipped(skipped)
        if not found and not tokens.closed: return
        yield self._end_resync(found)
      try:
        token = tokens.next_token()
        if token is None: return
        if token.kind == spi_trace.END:
          yield from self._end_of_input(token)
          return
        yield from self._step(token)
      except spi_trace.MalformedToken as e:
        self._begin_resync(e.message, e.offset)
      except FramingError as e:
        if e.token.kind == spi_trace.SELECT:
          # already at a chip select, so there is nothing to skip
          self._abandon()
          self.chip_selected = True
          yield Diagnostic(e.message, e.regnum, e.token.offset, tokens.preceding(e.token.offset), '', True)
        else:
          self._begin_resync(e.message, e.token.offset, e.regnum)
  
  def _abandon(self):
    self._trans = None
    self.packet.discard()
  
  def _begin_resync(self, message, offset, regnum=None):
    self._abandon()
    self._resync = (message, regnum, offset, self._tokens.preceding(offset))
    self._skipped = ''
    self._skipped_more = 0
  
  def _keep_skipped(self, text):
    room = SKIPPED_LIMIT - len(self._skipped)
    self._skipped += text[:room]
    self._skipped_more += max(0, len(text) - room)
  
  def _end_resync(self, found):
    message, regnum, offset, context = self._resync
    self._resync = None
    skipped, more = self._skipped, self._skipped_more
    self._skipped = ''
    self._skipped_more = 0
    return Diagnostic(message, regnum, offset, context, skipped, found, more)
  
  def _take_elapsed(self):
    elapsed = self._cmd_time
    self._cmd_time = 0
    return elapsed
  
  def _violation(self, message, value, token):
    before, after = self._tokens.neighborhood(token.offset)
    return ProtocolViolation(message, value, token.offset, before, after)
  
  def _step(self, token):
    kind = token.kind
    if kind == spi_trace.TIME:
      self._cmd_time += token.value
      self.packet.elapsed += token.value
    elif kind == spi_trace.PAIR:
      if self._trans is None:
        yield from self._begin_transaction(token)
      else:
        yield from self._continue_transaction(token)
    elif kind == spi_trace.SELECT:
      if self._trans is not None:
        raise FramingError('chip select inside an open transaction', token, self._trans.regnum)
      self.chip_selected = True
    elif kind == spi_trace.DESELECT:
      self.chip_selected = False
      if self._trans is not None: yield from self._end_transaction(token)
    elif kind == spi_trace.FLUSH:
      yield BufferFlush(token.offset, token.value)
    elif kind == spi_trace.LOSS:
      yield DataLoss(token.offset)
    elif kind == spi_trace.HEADER:
      yield Banner(token.offset)
  
  def _begin_transaction(self, token):
    is_read = bool(token.master & 0x80)
    is_burst = bool(token.master & 0x40)
    regnum = token.master & 0x3F
    op = 'read' if is_read else 'write'
    if regs.is_strobe(regnum, is_burst):
      if not self.chip_selected: yield _diagnostic('command without chip selected', regnum, token.offset)
      yield from self._command_strobe(regnum, token)
      return
    if regnum == regs.FIFO:
      if not is_burst: raise self._violation('non-burst FIFO %s is not supported' % op, regnum, token)
      if not self.chip_selected: raise self._violation('burst FIFO %s without chip selected' % op, regnum, token)
      self.packet.xmit = not is_read
      self._trans = _Transaction(_FIFO_BURST, regnum, is_read, self._take_elapsed())
    elif regnum == regs.PATABLE and is_burst:
      if not self.chip_selected: raise self._violation('burst power table %s without chip selected' % op, regnum, token)
      self._trans = _Transaction(_TABLE_BURST, regnum, is_read, self._take_elapsed())
    else:
      if not self.chip_selected:
        yield _diagnostic('%s%s without chip selected' % ('burst ' if is_burst else '', op), regnum, token.offset)
      self._trans = _Transaction(_REGISTER_BURST if is_burst else _SINGLE, regnum, is_read)
  
  def _continue_transaction(self, token):
    trans = self._trans
    value = token.slave if trans.is_read else token.master
    if trans.kind == _SINGLE:
      self._trans = None
      old = None if trans.is_read else self.regs.write(trans.regnum, value)
      yield RegisterAccess(self._take_elapsed(), trans.op, trans.regnum, value, old)
    elif trans.kind == _REGISTER_BURST:
      if trans.is_read:
        if trans.regnum >= regs.NUM_REGISTERS:
          raise self._violation('burst read of too many config registers', trans.regnum, token)
        yield RegisterAccess(self._take_elapsed(), 'read', trans.regnum, value, None)
      else:
        if trans.regnum > regs.LAST_CONFIG: raise self._violation('too much burst data', trans.regnum, token)
        self.regs.stage(trans.regnum, value)
      trans.regnum += 1
    else:
      trans.data.append(value)
      if trans.kind == _FIFO_BURST: self.packet.append(value)
  
  def _end_transaction(self, token):
    trans = self._trans
    self._trans = None
    if trans.kind == _SINGLE:
      raise FramingError('chip deselect before the data byte', token, trans.regnum)
    if trans.kind == _REGISTER_BURST:
      if trans.is_read: return
      changed = self.regs.commit(trans.start, trans.regnum)
      for regnum, old, new in changed:
        yield RegisterAccess(self._take_elapsed(), 'wrote', regnum, new, old)
      yield BurstSummary(self._take_elapsed(), trans.regnum - trans.start, len(changed))
      return
    yield BlockTransfer(trans.elapsed, trans.op, trans.regnum, bytes(trans.data))
    if trans.kind == _FIFO_BURST and trans.data:
      if self.packet.dropped:
        yield _diagnostic('packet truncated to %d bytes, %d more dropped' % (MAX_PACKET, self.packet.dropped),
                          trans.regnum, token.offset)
      yield self._emit_packet()
  
  def _emit_packet(self):
    current = self.regs.current
    packet = self.packet
    record = PacketRecord(packet.elapsed, packet.xmit, bytes(packet.data),
                          current[regs.CHANNR], current[regs.SYNC1], current[regs.SYNC0])
    packet.reset()
    return record
  
  def _command_strobe(self, regnum, token):
    yield CommandStrobe(self._take_elapsed(), regnum)
    if regnum == regs.SRES:
      if self.packet.length != 0:
        raise self._violation('reset with packet length not zero', self.packet.length, token)
      yield self._emit_packet()
    elif regnum == regs.SRX and self._receive_enable:
      current = self.regs.current
      yield ReceiveEnable(self.packet.elapsed, current[regs.CHANNR], current[regs.SYNC1], current[regs.SYNC0])
      self.packet.elapsed = 0
  
  def _end_of_input(self, token):
    if self._trans is not None:
      regnum = self._trans.regnum
      self._abandon()
      yield _diagnostic('trace ended inside a transaction', regnum, token.offset)
