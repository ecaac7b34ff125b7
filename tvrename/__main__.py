from tvrename.cli import main

raise SystemExit(main())
