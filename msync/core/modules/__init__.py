# Core modules for msync
