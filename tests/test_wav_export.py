"""Tests for 16-bit PCM WAV encoding"""

import io
import struct

import pytest
import numpy as np
import soundfile as sf

from intonation_lab.buffers.wav_export import WAV_HEADER_SIZE, encode_wav, write_wav


@pytest.mark.unit
@pytest.mark.audio
class TestEncodeWav:
    """Test byte-exact WAV output"""

    def test_one_second_of_silence(self, sample_audio_silence):
        data = encode_wav(sample_audio_silence, 48000)

        assert len(data) == WAV_HEADER_SIZE + 96000
        assert data[WAV_HEADER_SIZE:] == bytes(96000)

    def test_header_fields(self):
        data = encode_wav(np.zeros(100), 44100)
        fields = struct.unpack('<4sI4s4sIHHIIHH4sI', data[:WAV_HEADER_SIZE])

        assert fields == (
            b'RIFF', 36 + 200, b'WAVE',
            b'fmt ', 16, 1, 1, 44100, 88200, 2, 16,
            b'data', 200,
        )

    def test_samples_are_clamped_scaled_and_truncated(self):
        data = encode_wav(np.array([1.0, -1.0, 0.5, -0.5, 2.0, -3.0, 0.00002]), 8000)
        pcm = np.frombuffer(data[WAV_HEADER_SIZE:], dtype='<i2')
        assert pcm.tolist() == [32767, -32767, 16383, -16383, 32767, -32767, 0]

    def test_empty_input(self):
        data = encode_wav(np.zeros(0), 48000)
        assert len(data) == WAV_HEADER_SIZE
        assert struct.unpack('<I', data[40:44])[0] == 0

    def test_readable_by_soundfile(self, make_sine):
        tone = make_sine(440.0, 4800, amplitude=0.5)
        decoded, sample_rate = sf.read(io.BytesIO(encode_wav(tone, 48000)), dtype='float32')

        assert sample_rate == 48000
        assert decoded.shape == (4800,)
        np.testing.assert_allclose(decoded, tone, atol=2.0 / 32768)

    def test_write_wav(self, tmp_path, make_sine):
        path = write_wav(tmp_path / 'loops' / 'loop.wav', make_sine(220.0, 1000), 48000)

        assert path.exists()
        info = sf.info(str(path))
        assert info.samplerate == 48000
        assert info.frames == 1000
        assert info.subtype == 'PCM_16'
