#!/usr/bin/env python3
"""
Playlist Converter HTTP Server Runner
"""

from playlist_converter.interfaces.http import main


if __name__ == '__main__':
    main()
