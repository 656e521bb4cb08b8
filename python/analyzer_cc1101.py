'''CC1101 SPI analyzer for the SPI sniffer firmware.

Watches the conversation between a host processor and its CC1101 radio.  The
sniffer's trace is read live from its USB serial port, with everything read
appended to <prefix>.dat, or replayed from a saved <prefix>.dat.  Detailed
decodes are appended to <prefix>.cmds.txt and echoed to the console, packet
traffic alone is appended to <prefix>.pkts.txt.

Requires PySerial.
'''

import argparse
import sys

import serial

import cc1101_decoder as dec
from cc1101_log import LogWriter


VERSION = '0.1.0'

BAUD_RATE = 115200
READ_SIZE = 60000

DAT_SUFFIX = '.dat'
CMDS_SUFFIX = '.cmds.txt'
PKTS_SUFFIX = '.pkts.txt'

EXIT_ENVIRONMENT = 98
EXIT_VIOLATION = 99


class SerialTraceReader:
  
  def __init__(self, serial_port, file_prefix):
    self._s = serial.Serial(port=serial_port, baudrate=BAUD_RATE, timeout=0.2, inter_byte_timeout=0.1)
    try:
      self._fp = open('%s%s' % (file_prefix, DAT_SUFFIX), 'ab')
    except OSError:
      self._s.close()
      raise
    self.name = 'serial port %s' % serial_port
  
  def read(self):
    '''Returns whatever arrived before the timeout, possibly nothing.'''
    data = self._s.read(READ_SIZE)
    self._fp.write(data)
    return data
  
  def close(self):
    self._s.close()
    self._fp.close()


class FileTraceReader:
  
  def __init__(self, file_prefix):
    self.name = '%s%s' % (file_prefix, DAT_SUFFIX)
    self._fp = open(self.name, 'rb')
  
  def read(self):
    '''Returns the next line of the capture, or None at the end of it.'''
    return self._fp.readline() or None
  
  def close(self):
    self._fp.close()


class Analyzer:
  
  def __init__(self, reader, file_prefix, receive_enable=False, legacy=False, echo=True):
    self._reader = reader
    self._cmd_fp = open('%s%s' % (file_prefix, CMDS_SUFFIX), 'a')
    try:
      self._pkt_fp = open('%s%s' % (file_prefix, PKTS_SUFFIX), 'a')
    except OSError:
      self._cmd_fp.close()
      raise
    self._pkt_fp.write('\n')
    self._writer = LogWriter(self._cmd_fp, self._pkt_fp, sys.stdout if echo else None, sys.stderr)
    self._decoder = dec.Cc1101Decoder(receive_enable=receive_enable, legacy=legacy)
  
  def _emit(self, events):
    for event in events: self._writer.write(event)
  
  def _close(self):
    self._reader.close()
    self._cmd_fp.close()
    self._pkt_fp.close()
  
  def analyze(self):
    '''Decodes until the capture ends or Ctrl-C is pressed.  Returns the exit status.'''
    try:
      while True:
        data = self._reader.read()
        if data is None:
          self._emit(self._decoder.finish())
          self._writer.status('end of %s' % self._reader.name)
          return 0
        if not data: continue
        self._writer.status('got %d bytes from %s' % (len(data), self._reader.name))
        self._emit(self._decoder.decode(data.decode('ascii', errors='replace')))
    except KeyboardInterrupt:
      self._emit(self._decoder.finish())
      return 0
    except dec.ProtocolViolation as e:
      self._writer.fatal(e)
      return EXIT_VIOLATION
    finally:
      self._close()


def port_name(port):
  '''A bare number selects the sniffer's usual port by number, anything else is used as the device name.'''
  if not port.isdigit(): return port
  if sys.platform == 'win32': return 'COM%d' % int(port)
  return '/dev/ttyACM%d' % int(port)


def main(argv=None):
  parser = argparse.ArgumentParser(prog='cc1101-spi-decode',
                                   description='Decode an SPI sniffer bytestream to the command log, the packet log '
                                               'and the console.')
  parser.add_argument('-c', '--port', default='5',
                      help='input from serial port PORT and append it to <prefix>%s (default: %%(default)s)' % DAT_SUFFIX)
  parser.add_argument('-f', '--file', action='store_true', help='input from <prefix>%s instead' % DAT_SUFFIX)
  parser.add_argument('-r', '--receive-enable', action='store_true', help="record 'receive enable' in the packet log")
  parser.add_argument('-l', '--legacy', action='store_true', help='the trace uses the older MM/SS byte pair format')
  parser.add_argument('-p', '--prefix', default='spi', help='prefix for the capture and log files (default: %(default)s)')
  parser.add_argument('-q', '--quiet', action='store_true', help='do not echo the command log to the console')
  args = parser.parse_args(argv)
  
  sys.stderr.write('SPI decoder, V%s\n' % VERSION)
  try:
    if args.file:
      reader = FileTraceReader(args.prefix)
    else:
      reader = SerialTraceReader(port_name(args.port), args.prefix)
  except (serial.SerialException, OSError) as e:
    sys.stderr.write('%s\n' % e)
    return EXIT_ENVIRONMENT
  try:
    analyzer = Analyzer(reader, args.prefix, receive_enable=args.receive_enable, legacy=args.legacy,
                        echo=not args.quiet)
  except OSError as e:
    reader.close()
    sys.stderr.write('%s\n' % e)
    return EXIT_ENVIRONMENT
  sys.stderr.write('Reading from %s\n' % reader.name)
  return analyzer.analyze()


if __name__ == '__main__':
  sys.exit(main())
