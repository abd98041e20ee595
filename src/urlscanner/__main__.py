from urlscanner.cli import main

raise SystemExit(main())
