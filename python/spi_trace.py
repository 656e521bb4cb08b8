'''Tokenizer for the ASCII trace produced by the SPI sniffer firmware.

The sniffer buffers bus activity and writes it out whenever the bus goes quiet
or its buffer fills.  The trace is made of these elements:

  tNNNN.   microseconds since the previous chip select
  wNNNN.   the sniffer flushed a buffer of NNNN events
  [        chip select asserted
  ]        chip select released
  MMSS     master (MM) and slave (SS) bytes in hex; MM/SS in the legacy dialect
  !        the sniffer lost data
  .        delimiter, ignored, as are spaces and line breaks

A banner line is sent when the sniffer starts up and is reported separately so
it is never mistaken for data.
'''

from collections import namedtuple


BANNER = 'SPI Sniffer'

TIME = 'time'
FLUSH = 'flush'
SELECT = 'select'
DESELECT = 'deselect'
LOSS = 'loss'
PAIR = 'pair'
HEADER = 'banner'
END = 'end'

HISTORY_LENGTH = 64

_DIGITS = frozenset('0123456789')
_HEX_DIGITS = _DIGITS | frozenset('abcdefABCDEF')
_SKIP = frozenset(' .\t\r\n')
_LINE_BREAKS = frozenset('\r\n')


Token = namedtuple('Token', 'kind offset value master slave')


def _token(kind, offset, value=None, master=None, slave=None):
  return Token(kind, offset, value, master, slave)


class MalformedToken(Exception):
  
  def __init__(self, message, offset):
    super().__init__(message, offset)
    self.message = message
    self.offset = offset


class SpiTraceTokenizer:
  '''Splits trace text into tokens.
  
  Text is fed in whatever chunks the capture source delivers.  A token cut off
  at the end of a chunk is held back until the rest of it arrives (or until
  close() says no more is coming), so the token stream does not depend on where
  the chunk boundaries fall.
  '''
  
  def __init__(self, legacy=False):
    self._legacy = legacy
    self._pair_length = 5 if legacy else 4
    self._text = ''
    self._pos = 0
    self._base = 0  # trace offset of self._text[0]
    self._closed = False
  
  @property
  def offset(self):
    return self._base + self._pos
  
  @property
  def closed(self):
    return self._closed
  
  def feed(self, text):
    if self._closed: raise ValueError('tokenizer is closed')
    keep = max(0, self._pos - HISTORY_LENGTH)
    self._text = self._text[keep:] + text
    self._pos -= keep
    self._base += keep
  
  def close(self):
    self._closed = True
  
  def preceding(self, offset, length=32):
    '''Returns up to length characters of the text before the given trace offset.'''
    pos = max(0, offset - self._base)
    return self._text[max(0, pos - length):pos]
  
  def neighborhood(self, offset=None, length=HISTORY_LENGTH):
    '''Returns (text before, text at and after) the given trace offset, by default the cursor.'''
    pos = self._pos if offset is None else min(max(0, offset - self._base), len(self._text))
    return self._text[max(0, pos - length):pos], self._text[pos:pos + length]
  
  def skip_to_select(self):
    '''Consumes text up to the next chip select.

    Returns (skipped text, True if a chip select was reached).  The chip select
    itself is left for next_token().
    '''
    idx = self._text.find('[', self._pos)
    if idx < 0:
      skipped = self._text[self._pos:]
      self._pos = len(self._text)
      return skipped, False
    skipped = self._text[self._pos:idx]
    self._pos = idx
    return skipped, True
  
  def _number(self, what):
    '''Reads the decimal number following a one-letter prefix, or returns None if it may continue past the text.'''
    text = self._text
    start = end = self._pos + 1
    while end < len(text) and text[end] in _DIGITS: end += 1
    if end == len(text) and not self._closed: return None
    if end == start: raise MalformedToken('bad %s format' % what, self.offset)
    self._pos = end
    return int(text[start:end])
  
  def _pair(self):
    field = self._text[self._pos:self._pos + self._pair_length]
    for idx, char in enumerate(field):
      if self._legacy and idx == 2:
        good = char == '/'
      else:
        good = char in _HEX_DIGITS
      if not good: raise MalformedToken('bad hex data', self.offset)
    if len(field) < self._pair_length:
      if not self._closed: return None
      raise MalformedToken('truncated hex data', self.offset)
    self._pos += self._pair_length
    return int(field[:2], 16), int(field[-2:], 16)
  
  def _banner_at(self, pos):
    '''The banner is only recognized as a line of its own.  Returns None if the line may not be complete yet.'''
    text = self._text
    end = pos + len(BANNER)
    rest = text[pos:end]
    if pos > 0 and text[pos - 1] not in _LINE_BREAKS: raise MalformedToken('unexpected text', self._base + pos)
    if not BANNER.startswith(rest): raise MalformedToken('unexpected text', self._base + pos)
    if end >= len(text):
      if not self._closed: return None
      if rest != BANNER: raise MalformedToken('unexpected text', self._base + pos)
      return True
    if text[end] not in _LINE_BREAKS: raise MalformedToken('unexpected text', self._base + pos)
    return True
  
  def next_token(self):
    '''Returns the next token, None if more text is needed, or an END token once closed and drained.'''
    text = self._text
    while True:
      pos = self._pos
      offset = self._base + pos
      if pos >= len(text):
        if self._closed: return _token(END, offset)
        return None
      char = text[pos]
      if char in _SKIP:
        self._pos += 1
      elif char == 't':
        value = self._number('time')
        if value is None: return None
        return _token(TIME, offset, value)
      elif char == 'w':
        value = self._number('buffer write numevents')
        if value is None: return None
        return _token(FLUSH, offset, value)
      elif char == '[':
        self._pos += 1
        return _token(SELECT, offset)
      elif char == ']':
        self._pos += 1
        return _token(DESELECT, offset)
      elif char == '!':
        self._pos += 1
        return _token(LOSS, offset)
      elif char == BANNER[0]:
        if self._banner_at(pos) is None: return None
        self._pos += len(BANNER)
        return _token(HEADER, offset)
      else:
        pair = self._pair()
        if pair is None: return None
        return _token(PAIR, offset, master=pair[0], slave=pair[1])

