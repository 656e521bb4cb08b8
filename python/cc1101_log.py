'''Text rendering of decoder events.

Detailed lines go to the command log and are echoed to the console, packets go
to the packet log.  Status lines about the capture itself only go to the
console, so two decodes of the same bytes leave identical logs behind.
'''

import sys
import time

import cc1101_regs as regs
import cc1101_decoder as dec
import spi_trace


def _elapsed(usec):
  if not usec: return ' ' * 11
  return '%3d.%06d ' % divmod(usec, 1000000)


def _hex(data):
  return ' '.join(('%02X' % i) for i in data)


def _printable(text):
  return text.encode('unicode_escape').decode('ascii')


class LogWriter:
  
  def __init__(self, cmd_fp, pkt_fp, console=None, errors=sys.stderr):
    self._cmd_fp = cmd_fp
    self._pkt_fp = pkt_fp
    self._console = console
    self._errors = errors
  
  def _output(self, msg):
    msg = '%s\n' % msg
    self._cmd_fp.write(msg)
    if self._console:
      self._console.write(msg)
      self._console.flush()
  
  def _packet(self, msg):
    self._pkt_fp.write('%s\n' % msg)
  
  def status(self, msg):
    if not self._errors: return
    self._errors.write('%s %s\n' % (time.strftime('(%H:%M:%S)'), msg))
    self._errors.flush()
  
  def write(self, event):
    if isinstance(event, dec.RegisterAccess):
      reg = regs.register(event.regnum)
      msg = '%s%s %02X: %s (%s) as %02X' % (_elapsed(event.elapsed), event.op, event.regnum, reg.name, reg.descr,
                                             event.value)
      if event.op == 'wrote': msg += ' (was %02X)' % event.old
      decoded = regs.decode_value(event.regnum, event.value)
      if decoded: msg += ' %s' % decoded
      self._output(msg)
    elif isinstance(event, dec.BlockTransfer):
      reg = regs.register(event.regnum)
      self._output('%sburst %s %02X: %s (%s) as %s' % (_elapsed(event.elapsed), event.op, event.regnum, reg.name,
                                                       reg.descr, _hex(event.data)))
    elif isinstance(event, dec.BurstSummary):
      self._output('%sburst wrote %d registers, and %d changed' % (_elapsed(event.elapsed), event.written,
                                                                   event.changed))
    elif isinstance(event, dec.CommandStrobe):
      strobe = regs.strobe(event.regnum)
      self._output('%scommand %02X: %s (%s)' % (_elapsed(event.elapsed), event.regnum, strobe.name, strobe.descr))
    elif isinstance(event, dec.PacketRecord):
      msg = '%3d.%06d sec ' % divmod(event.elapsed, 1000000)
      if not event.length:
        msg += 'rset'
      else:
        msg += '%s %2d bytes chan %02X sync %02X %02X data %s%s' % ('sent' if event.xmit else 'rcvd', event.length,
                                                                    event.channel, event.sync1, event.sync0,
                                                                    '   ' if event.xmit else '', _hex(event.data))
      self._packet(msg)
    elif isinstance(event, dec.ReceiveEnable):
      self._packet('%3d.%06d sec rcv enable on chan %02X sync %02X %02X' % (divmod(event.elapsed, 1000000) +
                                                                           (event.channel, event.sync1, event.sync0)))
    elif isinstance(event, dec.Diagnostic):
      self._output(self._diagnostic(event))
    elif isinstance(event, dec.DataLoss):
      self._output('*** data lost ***')
    elif isinstance(event, dec.BufferFlush):
      self._output('received a buffer with %d events' % event.events)
    elif isinstance(event, dec.Banner):
      self.status('"%s" header line read' % spi_trace.BANNER)
    else:
      raise TypeError('unknown event %r' % (event,))
  
  def _diagnostic(self, event):
    where = '' if event.regnum is None else ', %02X' % event.regnum
    if event.context is None:
      return '**** %s%s at offset %d' % (event.message, where, event.offset)
    more = ' and %d more characters' % event.more if event.more else ''
    return '*** %s%s at offset %d after %s, skipping %s%s%s' % (event.message, where, event.offset,
                                                           _printable(event.context), _printable(event.skipped),
                                                           more, '' if event.resumed else '<end>')
  
  def fatal(self, err):
    '''Reports a ProtocolViolation, with the trace around it, to the log and the error stream.'''
    before, after = _printable(err.before), _printable(err.after)
    lines = ('**** %s' % err, '%s%s' % (before, after), '%s^ error at offset %d' % (' ' * len(before), err.offset))
    for line in lines:
      self._output(line)
      if self._errors: self._errors.write('%s\n' % line)
    if self._errors: self._errors.flush()
