"""docintake - template matching and field extraction for threat-intelligence document imports"""

__version__ = "0.1.0"
