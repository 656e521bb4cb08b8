import pytest

from cc1101_decoder import (MAX_PACKET, SKIPPED_LIMIT, Banner, BlockTransfer, BufferFlush, BurstSummary,
                            Cc1101Decoder, CommandStrobe, DataLoss, Diagnostic, PacketRecord, ProtocolViolation,
                            ReceiveEnable, RegisterAccess)


def decode(text, decoder=None, **kwargs):
  decoder = decoder or Cc1101Decoder(**kwargs)
  events = list(decoder.decode(text))
  events.extend(decoder.finish())
  return decoder, events


def of_type(events, cls):
  return [e for e in events if isinstance(e, cls)]


def payload(data, master=True):
  '''Byte pairs carrying data on the master or the slave side.'''
  if master: return ''.join('%02X0F' % b for b in data)
  return ''.join('00%02X' % b for b in data)


def test_single_write_updates_current():
  decoder, events = decode('[0A0F050F]')
  assert events == [RegisterAccess(0, 'write', 0x0A, 0x05, 0)]
  assert decoder.regs.current[0x0A] == 0x05


def test_read_after_write_returns_the_written_value():
  decoder, events = decode('[0A0F050F][8A0F0F05]')
  assert events[-1] == RegisterAccess(0, 'read', 0x0A, 0x05, None)
  assert decoder.regs.current[0x0A] == 0x05


def test_read_does_not_change_state():
  decoder, events = decode('[8A0F0033]')
  assert events == [RegisterAccess(0, 'read', 0x0A, 0x33, None)]
  assert decoder.regs.current[0x0A] == 0


def test_burst_write_reports_only_changed_registers():
  decoder, events = decode('[000FAA0F][400FAA0F110F220F]')
  wrote = [e for e in of_type(events, RegisterAccess) if e.op == 'wrote']
  assert [(e.regnum, e.old, e.value) for e in wrote] == [(1, 0x00, 0x11), (2, 0x00, 0x22)]
  assert of_type(events, BurstSummary) == [BurstSummary(0, 3, 2)]
  assert bytes(decoder.regs.current[0:3]) == b'\xAA\x11\x22'


def test_burst_write_of_identical_values_changes_nothing():
  decoder, events = decode('[400F010F020F][400F010F020F]')
  assert of_type(events, BurstSummary) == [BurstSummary(0, 2, 2), BurstSummary(0, 2, 0)]


def test_burst_write_past_the_config_registers_is_fatal():
  decoder = Cc1101Decoder()
  with pytest.raises(ProtocolViolation) as e:
    list(decoder.decode('[6E0F010F020F]'))
  assert e.value.message == 'too much burst data'
  assert e.value.value == 0x2F
  assert e.value.offset == 9


def test_burst_read_of_status_register():
  decoder, events = decode('[F50F0001]')
  assert events == [RegisterAccess(0, 'read', 0x35, 0x01, None)]


def test_burst_read_past_the_last_register_is_fatal():
  decoder = Cc1101Decoder()
  with pytest.raises(ProtocolViolation) as e:
    list(decoder.decode('[FD0F' + payload(b'\x01\x02\x03\x04', master=False) + ']'))
  assert e.value.value == 0x40


def test_tx_fifo_burst_becomes_one_sent_packet():
  data = bytes(range(1, 21))
  decoder, events = decode('[0A0F1C0F][040FD30F][050F910F]t100.[7F0F' + payload(data) + ']')
  packets = of_type(events, PacketRecord)
  assert packets == [PacketRecord(100, True, data, 0x1C, 0xD3, 0x91)]
  assert packets[0].length == len(data)
  assert of_type(events, BlockTransfer) == [BlockTransfer(100, 'write', 0x3F, data)]
  assert decoder.packet.length == 0


def test_rx_fifo_burst_becomes_one_received_packet():
  data = b'\x10\x20\x30'
  decoder, events = decode('[FF0F' + payload(data, master=False) + ']')
  assert of_type(events, PacketRecord) == [PacketRecord(0, False, data, 0, 0, 0)]


def test_oversized_packet_is_truncated_but_fully_consumed():
  data = bytes(range(120))
  decoder, events = decode('[7F0F' + payload(data) + '][0A0F070F]')
  packets = of_type(events, PacketRecord)
  assert len(packets) == 1
  assert packets[0].data == data[:MAX_PACKET]
  assert of_type(events, BlockTransfer)[0].data == data
  assert [d.message for d in of_type(events, Diagnostic)] == ['packet truncated to 100 bytes, 20 more dropped']
  assert events[-1] == RegisterAccess(0, 'write', 0x0A, 0x07, 0)


def test_empty_fifo_burst_is_not_a_packet():
  decoder, events = decode('[7F0F]')
  assert events == [BlockTransfer(0, 'write', 0x3F, b'')]


def test_packet_elapsed_time_runs_from_the_previous_packet():
  decoder, events = decode('t100.[7F0F010F]t50.[FF0F0002]')
  assert [p.elapsed for p in of_type(events, PacketRecord)] == [100, 50]


def test_non_burst_fifo_access_is_fatal():
  for text in ('[3F0F010F]', '[BF0F0001]'):
    with pytest.raises(ProtocolViolation) as e:
      list(Cc1101Decoder().decode(text))
    assert 'non-burst FIFO' in e.value.message


def test_fifo_burst_without_chip_select_is_fatal():
  with pytest.raises(ProtocolViolation) as e:
    list(Cc1101Decoder().decode('7F0F010F]'))
  assert e.value.message == 'burst FIFO write without chip selected'
  assert e.value.before == ''
  assert e.value.after.startswith('7F0F')


def test_power_table_burst_is_a_flat_transfer():
  decoder, events = decode('[7E0FC00F600F]')
  assert events == [BlockTransfer(0, 'write', 0x3E, b'\xC0\x60')]


def test_power_table_single_write():
  decoder, events = decode('[3E0FC00F]')
  assert events == [RegisterAccess(0, 'write', 0x3E, 0xC0, 0)]


def test_command_strobe():
  decoder, events = decode('t42.[360F]')
  assert events == [CommandStrobe(42, 0x36)]


def test_reset_is_recorded_as_an_empty_packet():
  decoder, events = decode('t7.[300F]')
  assert events == [CommandStrobe(7, 0x30), PacketRecord(7, False, b'', 0, 0, 0)]
  assert events[1].length == 0


def test_reset_with_a_packet_in_progress_is_fatal():
  decoder = Cc1101Decoder()
  decoder.packet.append(0x01)
  with pytest.raises(ProtocolViolation) as e:
    list(decoder.decode('[300F]'))
  assert e.value.message == 'reset with packet length not zero'
  assert e.value.value == 1


def test_receive_enable_record_only_when_asked_for():
  decoder, events = decode('[0A0F1C0F]t250.[340F]', receive_enable=True)
  assert of_type(events, ReceiveEnable) == [ReceiveEnable(250, 0x1C, 0, 0)]
  assert decoder.packet.elapsed == 0
  decoder, events = decode('[0A0F1C0F]t250.[340F]')
  assert of_type(events, ReceiveEnable) == []


def test_malformed_token_resynchronizes_at_the_next_chip_select():
  decoder, events = decode('tZZ.[0A0F050F]')
  assert events == [Diagnostic('bad time format', None, 0, '', 'tZZ.', True),
                    RegisterAccess(0, 'write', 0x0A, 0x05, 0)]


def test_resync_discards_the_partial_packet():
  decoder, events = decode('[7F0F010F020FZZ]t5.[0A0F050F]')
  diagnostics = of_type(events, Diagnostic)
  assert len(diagnostics) == 1
  assert diagnostics[0].message == 'bad hex data'
  assert diagnostics[0].skipped == 'ZZ]t5.'
  assert of_type(events, PacketRecord) == []
  assert events[-1] == RegisterAccess(0, 'write', 0x0A, 0x05, 0)
  assert decoder.packet.length == 0


def test_resync_spans_chunks():
  decoder = Cc1101Decoder()
  events = list(decoder.decode('[0AZZ'))
  assert events == []
  assert decoder.resyncing
  events.extend(decoder.decode(' junk '))
  events.extend(decoder.decode('[0A0F050F]'))
  events.extend(decoder.finish())
  assert not decoder.resyncing
  assert [type(e) for e in events] == [Diagnostic, RegisterAccess]
  assert events[0].skipped == '0AZZ junk '


def test_resync_that_reaches_the_end_of_input():
  decoder, events = decode('[0A0F050F]ZZ')
  assert events[-1] == Diagnostic('bad hex data', None, 10, '[0A0F050F]', 'ZZ', False)


def test_chip_select_inside_a_burst_restarts_there():
  decoder, events = decode('[7F0F010F[0A0F050F]')
  assert events == [Diagnostic('chip select inside an open transaction', 0x3F, 9, '[7F0F010F', '', True),
                    RegisterAccess(0, 'write', 0x0A, 0x05, 0)]
  assert decoder.packet.length == 0


def test_deselect_before_the_data_byte():
  decoder, events = decode('[0A0F]t5.[0A0F050F]')
  assert [type(e) for e in events] == [Diagnostic, RegisterAccess]
  assert events[0].message == 'chip deselect before the data byte'
  assert events[0].skipped == 't5.'


def test_access_without_chip_select_is_only_a_warning():
  decoder, events = decode('0A0F050F')
  assert events == [Diagnostic('write without chip selected', 0x0A, 0, None, None, None),
                    RegisterAccess(0, 'write', 0x0A, 0x05, 0)]


def test_command_without_chip_select_is_only_a_warning():
  decoder, events = decode('360F')
  assert events == [Diagnostic('command without chip selected', 0x36, 0, None, None, None), CommandStrobe(0, 0x36)]


def test_long_resync_keeps_only_the_start_of_the_skipped_text():
  junk = '0AZZ' + 'x' * 1000
  whole = decode('[' + junk + '[0A0F050F]')[1]
  assert whole[0].skipped == junk[:SKIPPED_LIMIT]
  assert whole[0].more == len(junk) - SKIPPED_LIMIT
  assert whole[1] == RegisterAccess(0, 'write', 0x0A, 0x05, 0)
  decoder = Cc1101Decoder()
  pieces = []
  text = '[' + junk + '[0A0F050F]'
  for i in range(0, len(text), 100):
    pieces.extend(decoder.decode(text[i:i + 100]))
  pieces.extend(decoder.finish())
  assert pieces == whole


def test_trace_ending_inside_a_transaction():
  decoder, events = decode('[7F0F010F')
  assert events == [Diagnostic('trace ended inside a transaction', 0x3F, 9, None, None, None)]
  assert decoder.packet.length == 0


def test_markers_and_banner():
  decoder, events = decode('SPI Sniffer\nw3.!')
  assert events == [Banner(0), BufferFlush(12, 3), DataLoss(15)]


def test_elapsed_time_goes_to_the_next_logged_line():
  decoder, events = decode('t100.[0A0F050F]t2000000.[340F][360F]')
  assert [e.elapsed for e in events] == [100, 2000000, 0]


def test_legacy_dialect():
  decoder, events = decode('t5![0A/0F 05/0F]', legacy=True)
  assert events == [DataLoss(2), RegisterAccess(5, 'write', 0x0A, 0x05, 0)]


def test_decoding_does_not_depend_on_chunk_boundaries():
  text = ('SPI Sniffer\nw40.t100.[0A0F1C0F]t20.[400FAA0F110F]\n'
          't3000.[7F0F0A0F0B0F0C0F]t10.[340F]!t5.[300F]tQ.[8A0F001C]')
  whole = decode(text, receive_enable=True)[1]
  decoder = Cc1101Decoder(receive_enable=True)
  pieces = []
  for char in text:
    pieces.extend(decoder.decode(char))
  pieces.extend(decoder.finish())
  assert pieces == whole
  assert len(of_type(whole, Diagnostic)) == 1
