"""Rolling history, note-event log and raw-audio capture buffers"""

from .rolling import HistorySample, TimeWindowedBuffer, PitchHistoryBuffer, NoteEventLog
from .capture import AudioChunk, LoopAudio, AudioCaptureBuffer
from .wav_export import WAV_HEADER_SIZE, encode_wav, write_wav

__all__ = [
    'HistorySample',
    'TimeWindowedBuffer',
    'PitchHistoryBuffer',
    'NoteEventLog',
    'AudioChunk',
    'LoopAudio',
    'AudioCaptureBuffer',
    'WAV_HEADER_SIZE',
    'encode_wav',
    'write_wav'
]
