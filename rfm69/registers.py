"""
RFM69 Register Map

Register addresses and bit values for the SX1231/RFM69 family, taken from
the HopeRF RFM69 datasheet, plus the fixed register programming table the
driver writes at init.

Only the registers the driver touches are listed here.
"""

from typing import List, Tuple, TYPE_CHECKING

if TYPE_CHECKING:
    from .radio.base import RadioConfig


# Register addresses
REG_FIFO = 0x00
REG_OPMODE = 0x01
REG_DATAMODUL = 0x02
REG_BITRATEMSB = 0x03
REG_BITRATELSB = 0x04
REG_FDEVMSB = 0x05
REG_FDEVLSB = 0x06
REG_FRFMSB = 0x07
REG_FRFMID = 0x08
REG_FRFLSB = 0x09
REG_PALEVEL = 0x11
REG_OCP = 0x13
REG_RXBW = 0x19
REG_RSSICONFIG = 0x23
REG_RSSIVALUE = 0x24
REG_DIOMAPPING1 = 0x25
REG_DIOMAPPING2 = 0x26
REG_IRQFLAGS1 = 0x27
REG_IRQFLAGS2 = 0x28
REG_RSSITHRESH = 0x29
REG_SYNCCONFIG = 0x2E
REG_SYNCVALUE1 = 0x2F
REG_SYNCVALUE2 = 0x30
REG_PACKETCONFIG1 = 0x37
REG_PAYLOADLENGTH = 0x38
REG_NODEADRS = 0x39
REG_FIFOTHRESH = 0x3C
REG_PACKETCONFIG2 = 0x3D
REG_AESKEY1 = 0x3E
REG_TESTPA1 = 0x5A
REG_TESTPA2 = 0x5C
REG_TESTDAGC = 0x6F

# Bus access
WRITE_FLAG = 0x80
ADDRESS_MASK = 0x7F

# RegOpMode
RF_OPMODE_SEQUENCER_ON = 0x00
RF_OPMODE_LISTEN_OFF = 0x00
RF_OPMODE_SLEEP = 0x00
RF_OPMODE_STANDBY = 0x04
RF_OPMODE_SYNTHESIZER = 0x08
RF_OPMODE_TRANSMITTER = 0x0C
RF_OPMODE_RECEIVER = 0x10
RF_OPMODE_MODE_MASK = 0xE3  # keeps sequencer and listen bits

# RegDataModul
RF_DATAMODUL_DATAMODE_PACKET = 0x00
RF_DATAMODUL_MODULATIONTYPE_FSK = 0x00
RF_DATAMODUL_MODULATIONSHAPING_00 = 0x00

# Bitrate 55.5 kbps
RF_BITRATEMSB_55555 = 0x02
RF_BITRATELSB_55555 = 0x40

# Frequency deviation 50 kHz
RF_FDEVMSB_50000 = 0x03
RF_FDEVLSB_50000 = 0x33

# RegPaLevel
RF_PALEVEL_PA0_ON = 0x80
RF_PALEVEL_PA0_OFF = 0x00
RF_PALEVEL_PA1_ON = 0x40
RF_PALEVEL_PA1_OFF = 0x00
RF_PALEVEL_PA2_ON = 0x20
RF_PALEVEL_PA2_OFF = 0x00
RF_PALEVEL_OUTPUTPOWER_MASK = 0x1F

# RegOcp
RF_OCP_OFF = 0x0F
RF_OCP_ON = 0x1A  # on, trimmed to 95 mA

# RegRxBw
RF_RXBW_DCCFREQ_010 = 0x40
RF_RXBW_MANT_16 = 0x00
RF_RXBW_EXP_2 = 0x02

# RegRssiConfig
RF_RSSI_START = 0x01
RF_RSSI_DONE = 0x02

# RegDioMapping
RF_DIOMAPPING1_DIO0_00 = 0x00  # PacketSent in TX
RF_DIOMAPPING1_DIO0_01 = 0x40  # PayloadReady in RX
RF_DIOMAPPING2_CLKOUT_OFF = 0x07

# RegIrqFlags
RF_IRQFLAGS1_MODEREADY = 0x80
RF_IRQFLAGS2_FIFONOTEMPTY = 0x40
RF_IRQFLAGS2_PACKETSENT = 0x08
RF_IRQFLAGS2_PAYLOADREADY = 0x04
RF_IRQFLAGS2_FIFOOVERRUN = 0x10

# RegSyncConfig
RF_SYNC_ON = 0x80
RF_SYNC_FIFOFILL_AUTO = 0x00
RF_SYNC_SIZE_2 = 0x08
RF_SYNC_TOL_0 = 0x00
SYNC_WORD_LEADING = 0x2D  # RFM12B compatible first sync byte

# RegPacketConfig1
RF_PACKET1_FORMAT_VARIABLE = 0x80
RF_PACKET1_DCFREE_OFF = 0x00
RF_PACKET1_CRC_ON = 0x10
RF_PACKET1_CRCAUTOCLEAR_ON = 0x00
RF_PACKET1_ADRSFILTERING_NODE = 0x02

# RegFifoThresh
RF_FIFOTHRESH_TXSTART_FIFONOTEMPTY = 0x80
RF_FIFOTHRESH_VALUE = 0x0F

# RegPacketConfig2
RF_PACKET2_RXRESTARTDELAY_2BITS = 0x10
RF_PACKET2_RXRESTART = 0x04
RF_PACKET2_AUTORXRESTART_ON = 0x02
RF_PACKET2_AES_ON = 0x01
RF_PACKET2_AES_OFF = 0x00

# RegTestDagc
RF_DAGC_IMPROVED_LOWBETA0 = 0x30

# High power PA test register values (TX on / RX or off)
TESTPA1_BOOST = 0x5D
TESTPA1_NORMAL = 0x55
TESTPA2_BOOST = 0x7C
TESTPA2_NORMAL = 0x70

# Frame limits
FIFO_SIZE = 66  # max frame length accepted by the hardware
MAX_PAYLOAD = 62
RSSI_THRESHOLD = 220  # -110 dBm
AES_KEY_SIZE = 16

# Crystal 32 MHz / 2^19
FXOSC = 32000000
FSTEP = FXOSC / 2 ** 19  # 61.03515625 Hz


def init_table(config: "RadioConfig") -> List[Tuple[int, int]]:
    """
    Build the ordered register programming table for a configuration.

    Band, network id and node id are substituted here; everything else
    is fixed.

    Args:
        config: Radio configuration

    Returns:
        List of (register, value) pairs in write order
    """
    frf_msb, frf_mid, frf_lsb = config.band.frf
    return [
        (REG_OPMODE, RF_OPMODE_SEQUENCER_ON | RF_OPMODE_LISTEN_OFF | RF_OPMODE_STANDBY),
        (REG_DATAMODUL, RF_DATAMODUL_DATAMODE_PACKET | RF_DATAMODUL_MODULATIONTYPE_FSK
         | RF_DATAMODUL_MODULATIONSHAPING_00),
        (REG_BITRATEMSB, RF_BITRATEMSB_55555),
        (REG_BITRATELSB, RF_BITRATELSB_55555),
        (REG_FDEVMSB, RF_FDEVMSB_50000),  # FDEV + BitRate / 2 <= 500 kHz
        (REG_FDEVLSB, RF_FDEVLSB_50000),
        (REG_FRFMSB, frf_msb),
        (REG_FRFMID, frf_mid),
        (REG_FRFLSB, frf_lsb),
        (REG_RXBW, RF_RXBW_DCCFREQ_010 | RF_RXBW_MANT_16 | RF_RXBW_EXP_2),  # BitRate < 2 * RxBw
        (REG_DIOMAPPING1, RF_DIOMAPPING1_DIO0_01),
        (REG_DIOMAPPING2, RF_DIOMAPPING2_CLKOUT_OFF),
        (REG_IRQFLAGS2, RF_IRQFLAGS2_FIFOOVERRUN),  # resets FIFO and status flags
        (REG_RSSITHRESH, RSSI_THRESHOLD),
        (REG_SYNCCONFIG, RF_SYNC_ON | RF_SYNC_FIFOFILL_AUTO | RF_SYNC_SIZE_2 | RF_SYNC_TOL_0),
        (REG_SYNCVALUE1, SYNC_WORD_LEADING),
        (REG_SYNCVALUE2, config.network_id),
        (REG_PACKETCONFIG1, RF_PACKET1_FORMAT_VARIABLE | RF_PACKET1_DCFREE_OFF | RF_PACKET1_CRC_ON
         | RF_PACKET1_CRCAUTOCLEAR_ON | RF_PACKET1_ADRSFILTERING_NODE),
        (REG_PAYLOADLENGTH, FIFO_SIZE),  # max frame size in variable length mode
        (REG_NODEADRS, config.node_id),
        (REG_FIFOTHRESH, RF_FIFOTHRESH_TXSTART_FIFONOTEMPTY | RF_FIFOTHRESH_VALUE),
        # RXRESTARTDELAY must match the transmitter PA ramp-down time
        (REG_PACKETCONFIG2, RF_PACKET2_RXRESTARTDELAY_2BITS | RF_PACKET2_AUTORXRESTART_ON
         | RF_PACKET2_AES_OFF),
        (REG_TESTDAGC, RF_DAGC_IMPROVED_LOWBETA0),  # continuous DAGC in RX
    ]
