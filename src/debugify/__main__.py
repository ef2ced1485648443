from debugify.cli import main

raise SystemExit(main())
