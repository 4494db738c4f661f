"""AudioSplit API: split uploaded MP3/WAV files into parts with FFmpeg."""
