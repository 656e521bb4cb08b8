'''Register and command strobe catalog for the TI CC1101 RF transceiver.'''

from collections import namedtuple


NUM_REGISTERS = 64
FIRST_STROBE = 0x30
LAST_STROBE = 0x3D  # 0x3E and 0x3F are the PA table and the FIFOs, never strobes

SYNC1 = 0x04
SYNC0 = 0x05
CHANNR = 0x0A
LAST_CONFIG = 0x2E
PATABLE = 0x3E
FIFO = 0x3F

SRES = 0x30
SRX = 0x34


GDO_SELECTION = (
  'RX FIFO filled',                    # 0x00
  'RX FIFO filled, or end of packet',
  'TX FIFO filled',
  'TX FIFO full',
  'RX FIFO overflow',
  'TX FIFO underflow',
  'sync word sent/rcvd',
  'packet received',
  'preamble quality reached',          # 0x08
  'clear channel assessment',
  'PLL lock detected',
  'serial clock',
  'serial sync data out',
  'serial data out',
  'carrier sense',
  'CRC ok',
  '?', '?', '?', '?', '?', '?',        # 0x10
  'RX hard data 1',
  'RX hard data 0',
  '?', '?', '?',                       # 0x18
  'PA_PD',
  'LNA_PD',
  'RX_SYMBOL_TICK',
  '?', '?',
  '?', '?', '?', '?',                  # 0x20
  'WOR_EVNT0',
  'WOR_EVNT1',
  'CLK_256',
  'CLK_32k',
  '?',                                 # 0x28
  'CHIP_RDYn',
  '?',
  'XOSC stable',
  '?', '?',
  'high impedance',
  'hardwired to 0',
  'CLK_XOSC/1',                        # 0x30
  'CLK_XOSC/1.5',
  'CLK_XOSC/2',
  'CLK_XOSC/3',
  'CLK_XOSC/4',
  'CLK_XOSC/6',
  'CLK_XOSC/8',
  'CLK_XOSC/12',
  'CLK_XOSC/16',                       # 0x38
  'CLK_XOSC/24',
  'CLK_XOSC/32',
  'CLK_XOSC/48',
  'CLK_XOSC/64',
  'CLK_XOSC/96',
  'CLK_XOSC/128',
  'CLK_XOSC/192',
)


class GdoRule(namedtuple('GdoRule', 'bit7_label')):
  '''Decode rule for the IOCFGx registers.
  
  Bits 5-0 select the pin function, bit 6 inverts the output, and bit 7 has a
  register-specific meaning named by bit7_label (None if the bit is unused).
  '''
  
  __slots__ = ()
  
  def describe(self, value):
    parts = []
    if self.bit7_label and value & 0x80: parts.append('%s, ' % self.bit7_label)
    if value & 0x40: parts.append('inverted ')
    parts.append(GDO_SELECTION[value & 0x3F])
    return ''.join(parts)


RegisterDescriptor = namedtuple('RegisterDescriptor', 'name descr rule')
CommandStrobeDescriptor = namedtuple('CommandStrobeDescriptor', 'name descr')


def _reg(name, descr, rule=None):
  return RegisterDescriptor(name, descr, rule)


CONFIG_REGS = (
  _reg('IOCFG2', 'GDO2 output pin config', GdoRule(None)),
  _reg('IOCFG1', 'GDO1 output pin config', GdoRule('high GDO output strength')),
  _reg('IOCFG0', 'GDO0 output pin config', GdoRule('enable temp sensor')),
  _reg('FIFOTHR', 'FIFO thresholds'),
  _reg('SYNC1', 'sync word high'),
  _reg('SYNC0', 'sync word low'),
  _reg('PKTLEN', 'packet length'),
  _reg('PKTCTRL1', 'packet control 1'),
  _reg('PKTCTRL0', 'packet control 0'),
  _reg('ADDR', 'device address'),
  _reg('CHANNR', 'channel number'),
  _reg('FSCTRL1', 'frequency synthesizer control 1'),
  _reg('FSCTRL0', 'frequency synthesizer control 0'),
  _reg('FREQ2', 'frequency control word H'),
  _reg('FREQ1', 'frequency control word M'),
  _reg('FREQ0', 'frequency control word L'),
  _reg('MDMCFG4', 'modem config 4'),
  _reg('MDMCFG3', 'modem config 3'),
  _reg('MDMCFG2', 'modem config 2'),
  _reg('MDMCFG1', 'modem config 1'),
  _reg('MDMCFG0', 'modem config 0'),
  _reg('DEVIATN', 'modem deviation setting'),
  _reg('MCSM2', 'main radio state machine config 2'),
  _reg('MCSM1', 'main radio state machine config 1'),
  _reg('MCSM0', 'main radio state machine config 0'),
  _reg('FOCCFG', 'frequency offset compensation config'),
  _reg('BSCFG', 'bit sync config'),
  _reg('AGCCTRL2', 'AGC control 2'),
  _reg('AGCCTRL1', 'AGC control 1'),
  _reg('AGCCTRL0', 'AGC control 0'),
  _reg('WOREVT1', 'event 0 timeout H'),
  _reg('WOREVT0', 'event 0 timeout L'),
  _reg('WORCTRL', 'wake on radio control'),
  _reg('FREND1', 'front end RX config'),
  _reg('FREND0', 'front end TX config'),
  _reg('FSCAL3', 'frequency synthesizer calibration 3'),
  _reg('FSCAL2', 'frequency synthesizer calibration 2'),
  _reg('FSCAL1', 'frequency synthesizer calibration 1'),
  _reg('FSCAL0', 'frequency synthesizer calibration 0'),
  _reg('RCCTRL1', 'RC oscillator config 1'),
  _reg('RCCTRL0', 'RC oscillator config 0'),
  _reg('FSTEST', 'frequency synthesizer calibration control'),
  _reg('PTEST', 'production test'),
  _reg('AGCTEST', 'AGC test'),
  _reg('TEST2', 'test settings 2'),
  _reg('TEST1', 'test settings 1'),
  _reg('TEST0', 'test settings 0'),
  _reg('UNUSED 0x2F', ''),
  _reg('PARTNUM', 'part number'),
  _reg('VERSION', 'version number'),
  _reg('FREQEST', 'frequency offset estimate'),
  _reg('LQI', 'demodulator estimate for link quality'),
  _reg('RSSI', 'received signal strength'),
  _reg('MARCSTATE', 'control machine state'),
  _reg('WORTIME1', 'WOR timer H'),
  _reg('WORTIME0', 'WOR timer L'),
  _reg('PKTSTATUS', 'GDOx and packet status'),
  _reg('VCO_VC_DAC', 'PLL calibration module setting'),
  _reg('TXBYTES', 'underflow, and #bytes in TX FIFO'),
  _reg('RXBYTES', 'overflow, and #bytes in RX FIFO'),
  _reg('RCCTRL1_STATUS', 'RC oscillator calibration result 1'),
  _reg('RCCTRL0_STATUS', 'RC oscillator calibration result 0'),
  _reg('PATABLE', 'power amp control'),
  _reg('FIFO', 'data'),
)

COMMAND_STROBES = (
  CommandStrobeDescriptor('SRES', 'reset chip'),
  CommandStrobeDescriptor('SFSTXON', 'enable and calibrate'),
  CommandStrobeDescriptor('SXOFF', 'turn off oscillator'),
  CommandStrobeDescriptor('SCAL', 'calibrate synthesizer'),
  CommandStrobeDescriptor('SRX', 'enable RX'),
  CommandStrobeDescriptor('STX', 'enable TX'),
  CommandStrobeDescriptor('SIDLE', 'exit TX/RX'),
  CommandStrobeDescriptor('UNUSED 0x37', ''),
  CommandStrobeDescriptor('SWOR', 'start RX polling (wake-on-radio)'),
  CommandStrobeDescriptor('SPWD', 'enter power down mode'),
  CommandStrobeDescriptor('SFRX', 'flush RX FIFO'),
  CommandStrobeDescriptor('SFTX', 'flush TX FIFO'),
  CommandStrobeDescriptor('SWORRST', 'reset real time clock to Event1'),
  CommandStrobeDescriptor('SNOP', 'no operation'),
  CommandStrobeDescriptor('UNUSED 0x3E', ''),
  CommandStrobeDescriptor('UNUSED 0x3F', ''),
)


def register(regnum):
  return CONFIG_REGS[regnum]


def strobe(regnum):
  '''Look up a command strobe by its register number (0x30-0x3F).'''
  if not FIRST_STROBE <= regnum < NUM_REGISTERS: raise IndexError('not a command strobe: 0x%02X' % regnum)
  return COMMAND_STROBES[regnum - FIRST_STROBE]


def is_strobe(regnum, is_burst):
  return FIRST_STROBE <= regnum <= LAST_STROBE and not is_burst


def decode_value(regnum, value):
  '''Returns the register-specific meaning of value, or '' if the register has no decode rule.'''
  rule = CONFIG_REGS[regnum].rule
  if rule is None: return ''
  return rule.describe(value)
