"""Multi-threaded UDP server and flood testing."""